"""Ahead-of-time client generation.

The generator loads a compiled API class and writes a module with one plain
function per endpoint. Each function takes a bound transport as its first
argument and calls the same builders the runtime uses, so a generated
function and the corresponding API method put identical bytes on the wire.
"""

import ast
import importlib
import inspect
import logging
from typing import Any

from upath import UPath

from declient.client import Endpoint, get_compiled_api
from declient.codegen.annotations import annotation_expr, value_expr
from declient.codegen.ast_utils import (
    ImportCollector,
    _all,
    _argument,
    _assign,
    _async_func,
    _attr,
    _call,
    _constant,
    _docstring,
    _func,
    _keyword,
    _list,
    _name,
    _tuple,
    _with,
)
from declient.codegen.file_writer import PythonFileWriter
from declient.compiler.compiler import CompiledApi
from declient.compiler.types import (
    BodyKind,
    PathRole,
    QueryRole,
    RequestPlan,
    ReturnShapeKind,
)
from declient.config import DocumentConfig
from declient.exceptions import CodeGenerationError

__all__ = ['Codegen', 'ModuleEmitter', 'load_api']

logger = logging.getLogger(__name__)

CLIENT_ARG = 'client'

# Names the generated module imports from declient, by module.
RUNTIME_IMPORTS = {
    'declient.builders.body_builder': {
        'encode_form_body',
        'encode_json_body',
        'encode_multipart_body',
    },
    'declient.builders.header_builder': {'assemble_headers'},
    'declient.builders.path_builder': {'build_path'},
    'declient.builders.query_builder': {'query_pairs'},
    'declient.builders.request_builder': {
        'build_request',
        'build_url',
        'request_extensions',
    },
    'declient.builders.values': {'serializing'},
    'declient.compiler.types': {
        'CollectionFormat',
        'ResponsePolicy',
        'ReturnShapeKind',
        'describe_type',
    },
    'declient.interpreter': {'interpret_response'},
    'declient.metadata': {'ParamMeta', 'ParameterMetadata'},
    'declient.runtime': {'await_with_timeout'},
    'declient.transport': {'BoundTransport'},
    'pydantic': {'TypeAdapter'},
}

RESERVED_NAMES = frozenset(
    {CLIENT_ARG, 'STATIC_HEADERS'}
    | {name for names in RUNTIME_IMPORTS.values() for name in names}
)


def load_api(target: str) -> type:
    """Import an API class from a ``'package.module:ClassName'`` target.

    Raises:
        CodeGenerationError: If the module or class cannot be loaded.
    """
    module_name, _, qualname = target.partition(':')
    try:
        obj: Any = importlib.import_module(module_name)
        for part in qualname.split('.'):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise CodeGenerationError(f"cannot load API '{target}'", cause=e) from e
    if not isinstance(obj, type):
        raise CodeGenerationError(f"'{target}' is not a class")
    return obj


class ModuleEmitter:
    """Builds the AST of a generated client module for one compiled API.

    Example:
        >>> emitter = ModuleEmitter(GitHub)
        >>> body = emitter.emit()
    """

    def __init__(self, api_cls: type, source: str | None = None, docstrings: bool = True):
        """Initialize the emitter.

        Args:
            api_cls: A compiled API class.
            source: How the class was referenced, for the module docstring.
            docstrings: Whether to copy endpoint docstrings.
        """
        try:
            self.compiled: CompiledApi = get_compiled_api(api_cls)
        except TypeError as e:
            raise CodeGenerationError(str(e), context=api_cls.__qualname__) from e
        self.api_cls = api_cls
        self.source = source or f'{api_cls.__module__}:{api_cls.__qualname__}'
        self.docstrings = docstrings
        self.imports = ImportCollector()
        self._constants: list[ast.stmt] = []

    def _runtime(self, name: str) -> ast.Name:
        for module, names in RUNTIME_IMPORTS.items():
            if name in names:
                self.imports.add_import(module, name)
                return _name(name)
        raise KeyError(name)

    def _constant_name(self, plan: RequestPlan, suffix: str) -> str:
        return f'_{plan.name.upper()}_{suffix}'

    def _define(self, name: str, value: ast.expr) -> ast.Name:
        self._constants.append(_assign(_name(name), value))
        return _name(name)

    def emit(self) -> list[ast.stmt]:
        """Build the module body: docstring, imports, constants and functions."""
        plans = list(self.compiled)
        functions = [self._emit_endpoint(plan) for plan in plans]

        duplicates = self.imports.duplicate_names()
        if duplicates:
            raise CodeGenerationError(
                f'names imported from more than one module: {", ".join(sorted(duplicates))}',
                context=self.compiled.declaration.name,
            )
        imported = self.imports.imported_names()
        for plan in plans:
            if plan.name in imported:
                raise CodeGenerationError(
                    f"endpoint name '{plan.name}' clashes with an imported name",
                    context=plan.name,
                )

        static = plans[0].headers.static if plans else ()
        header_constant = _assign(
            _name('STATIC_HEADERS'),
            _tuple(_tuple([_constant(name), _constant(value)]) for name, value in static),
        )

        docstring = (
            f'Client functions for {self.compiled.declaration.name}.\n\n'
            f'Generated by declient from {self.source}. Do not edit by hand.\n'
        )
        return [
            _docstring(docstring),
            *self.imports.to_ast(),
            header_constant,
            *self._constants,
            *functions,
            _all(plan.name for plan in plans),
        ]

    # -------------------------------------------------------------------------
    # Endpoint functions
    # -------------------------------------------------------------------------

    def _signature(self, plan: RequestPlan) -> inspect.Signature:
        endpoint = inspect.getattr_static(self.api_cls, plan.name, None)
        if not isinstance(endpoint, Endpoint):
            raise CodeGenerationError(
                f"'{plan.name}' is not a compiled endpoint of {self.compiled.declaration.name}"
            )
        return endpoint.signature

    def _returns(self, plan: RequestPlan) -> Any:
        for endpoint in self.compiled.declaration.endpoints:
            if endpoint.name == plan.name:
                return endpoint.returns
        return Any

    def _arguments(self, plan: RequestPlan) -> dict[str, Any]:
        signature = self._signature(plan)
        posonly, args, kwonly = [], [], []
        defaults, kw_defaults = [], []
        for parameter in signature.parameters.values():
            if parameter.name in RESERVED_NAMES or parameter.name.startswith('_'):
                raise CodeGenerationError(
                    f"parameter name '{parameter.name}' clashes with generated code",
                    context=plan.name,
                )
            annotation = plan.parameter(parameter.name).descriptor.annotation
            arg = _argument(parameter.name, annotation_expr(annotation, self.imports))
            has_default = parameter.default is not inspect.Parameter.empty
            default = value_expr(parameter.default, self.imports) if has_default else None
            if parameter.kind is inspect.Parameter.KEYWORD_ONLY:
                kwonly.append(arg)
                kw_defaults.append(default)
                continue
            (posonly if parameter.kind is inspect.Parameter.POSITIONAL_ONLY else args).append(arg)
            if has_default:
                defaults.append(default)

        client = _argument(CLIENT_ARG, self._runtime('BoundTransport'))
        if posonly:
            posonly.insert(0, client)
        else:
            args.insert(0, client)
        return {
            'posonlyargs': posonly,
            'args': args,
            'defaults': defaults,
            'kwonlyargs': kwonly,
            'kw_defaults': kw_defaults,
        }

    def _emit_endpoint(self, plan: RequestPlan) -> ast.stmt:
        if plan.name in RESERVED_NAMES:
            raise CodeGenerationError(
                f"endpoint name '{plan.name}' clashes with generated code", context=plan.name
            )
        logger.debug(f'Generating {plan.method} {plan.path} as {plan.name}()')

        metadata = self._metadata_constant(plan)
        response_policy = self._response_constant(plan)
        arguments = self._arguments(plan)

        body: list[ast.stmt] = []
        doc = plan.doc if self.docstrings and plan.doc else f'{plan.method} {plan.path}'
        body.append(_docstring(doc))
        body.extend(self._request_statements(plan, metadata))

        execute = _call(_attr(CLIENT_ARG, 'execute'), [_name('_request')])
        if plan.is_async:
            execute = ast.Await(
                value=_call(
                    self._runtime('await_with_timeout'),
                    [execute, _constant(plan.timeout), _name('_request')],
                )
            )
        body.append(_assign(_name('_response'), execute))
        body.append(
            ast.Return(
                value=_call(
                    self._runtime('interpret_response'),
                    [response_policy, _name('_response')],
                )
            )
        )

        returns = annotation_expr(self._returns(plan), self.imports)
        factory = _async_func if plan.is_async else _func
        return factory(plan.name, body=body, returns=returns, **arguments)

    def _request_statements(self, plan: RequestPlan, metadata: ast.expr) -> list[ast.stmt]:
        statements: list[ast.stmt] = []

        statements.append(_assign(_name('_path'), _constant(plan.path)))
        for parameter in plan.with_role(PathRole):
            value = _list([_tuple([_constant(parameter.key), _name(parameter.name)])])
            build = _call(self._runtime('build_path'), [_name('_path'), value])
            statements.append(self._serializing(parameter.name, [_assign(_name('_path'), build)]))

        url_args: list[ast.expr] = [_attr(CLIENT_ARG, 'base_url'), _name('_path')]
        query_parameters = plan.with_role(QueryRole)
        if query_parameters:
            statements.append(_assign(_name('_query'), _list([])))
            for parameter in query_parameters:
                descriptor = self._define(
                    self._constant_name(plan, f'{parameter.name.upper()}_TYPE'),
                    _call(
                        self._runtime('describe_type'),
                        [annotation_expr(parameter.descriptor.annotation, self.imports)],
                    ),
                )
                collection_format = _attr(
                    self._runtime('CollectionFormat'), parameter.role.format.name
                )
                pairs = _call(
                    self._runtime('query_pairs'),
                    [_constant(parameter.key), _name(parameter.name), descriptor, collection_format],
                )
                extend = ast.Expr(value=_call(_attr('_query', 'extend'), [pairs]))
                statements.append(self._serializing(parameter.name, [extend]))
            url_args.append(_name('_query'))

        header_args: list[ast.expr] = [_name('STATIC_HEADERS')]
        if plan.headers.parameters or plan.headers.bags:
            header_args.append(
                _list(
                    _tuple([_constant(header), _name(name)])
                    for name, header in plan.headers.parameters
                )
            )
            header_args.append(_list(_name(name) for name in plan.headers.bags))
        headers = _assign(_name('_headers'), _call(self._runtime('assemble_headers'), header_args))
        statements.append(self._serializing('headers', [headers]))

        request_args: list[ast.expr] = [
            _constant(plan.method),
            _call(self._runtime('build_url'), url_args),
            _name('_headers'),
        ]
        body = self._body_expr(plan)
        if body is not None:
            assign = _assign(_name('_body'), body)
            if plan.body.kind is BodyKind.MULTIPART:
                statements.append(assign)
            else:
                statements.append(self._serializing(plan.body.fields[0][0], [assign]))
            request_args.append(_name('_body'))
        else:
            request_args.append(_constant(None))
        request_args.append(
            _call(self._runtime('request_extensions'), [metadata, _constant(plan.timeout)])
        )
        statements.append(
            _assign(_name('_request'), _call(self._runtime('build_request'), request_args))
        )
        return statements

    def _serializing(self, parameter: str, body: list[ast.stmt]) -> ast.With:
        # Failures in the block are reported against the parameter
        return _with(_call(self._runtime('serializing'), [_constant(parameter)]), body)

    def _body_expr(self, plan: RequestPlan) -> ast.expr | None:
        match plan.body.kind:
            case BodyKind.NONE:
                return None
            case BodyKind.MULTIPART:
                fields = _list(
                    _tuple([_constant(field_name), _name(name)])
                    for name, field_name in plan.body.fields
                )
                return _call(self._runtime('encode_multipart_body'), [fields])

        name = plan.body.fields[0][0]
        annotation = annotation_expr(plan.parameter(name).descriptor.annotation, self.imports)
        if plan.body.kind is BodyKind.FORM:
            encoder = self._define(
                self._constant_name(plan, 'BODY_TYPE'),
                _call(self._runtime('describe_type'), [annotation]),
            )
            encode = _call(self._runtime('encode_form_body'), [_name(name), encoder])
        else:
            encoder = self._define(
                self._constant_name(plan, 'BODY_ADAPTER'),
                _call(self._runtime('TypeAdapter'), [annotation]),
            )
            encode = _call(self._runtime('encode_json_body'), [_name(name), encoder])
        # None-valued bodies send no body at all
        return ast.IfExp(
            test=ast.Compare(
                left=_name(name), ops=[ast.IsNot()], comparators=[_constant(None)]
            ),
            body=encode,
            orelse=_constant(None),
        )

    def _metadata_constant(self, plan: RequestPlan) -> ast.Name:
        parameters = _tuple(
            _call(
                self._runtime('ParamMeta'),
                keywords=[
                    _keyword('name', _constant(meta.name)),
                    _keyword('location', _constant(meta.location)),
                    _keyword('type_name', _constant(meta.type_name)),
                    _keyword('required', _constant(meta.required)),
                ],
            )
            for meta in plan.metadata.parameters
        )
        return self._define(
            self._constant_name(plan, 'METADATA'),
            _call(
                self._runtime('ParameterMetadata'),
                keywords=[
                    _keyword('method_name', _constant(plan.metadata.method_name)),
                    _keyword('path_template', _constant(plan.metadata.path_template)),
                    _keyword('parameters', parameters),
                ],
            ),
        )

    def _response_constant(self, plan: RequestPlan) -> ast.Name:
        policy = plan.response
        keywords = [
            _keyword('kind', _attr(self._runtime('ReturnShapeKind'), policy.kind.name)),
            _keyword('not_found_as_none', _constant(policy.not_found_as_none)),
        ]
        if policy.kind is ReturnShapeKind.JSON:
            annotation = annotation_expr(policy.annotation, self.imports)
            keywords.append(_keyword('annotation', annotation))
            keywords.append(
                _keyword(
                    'adapter',
                    _call(
                        self._runtime('TypeAdapter'),
                        [annotation_expr(policy.annotation, self.imports)],
                    ),
                )
            )
        return self._define(
            self._constant_name(plan, 'RESPONSE'),
            _call(self._runtime('ResponsePolicy'), keywords=keywords),
        )


class Codegen:
    """Generates a client module for one configured API class.

    Example:
        >>> config = DocumentConfig(api='myproject.api:GitHub', output='./generated')
        >>> Codegen(config).generate()
    """

    def __init__(self, config: DocumentConfig):
        self.config = config
        self.writer = PythonFileWriter()

    @property
    def output_path(self) -> UPath:
        return UPath(self.config.output) / self.config.module_file

    def render(self) -> str:
        """Return the generated module source without writing it."""
        api_cls = load_api(self.config.api)
        emitter = ModuleEmitter(
            api_cls, source=self.config.api, docstrings=self.config.generate_docstrings
        )
        return self.writer.render(emitter.emit())

    def generate(self) -> UPath:
        """Generate and write the client module.

        Returns:
            The path of the written module.

        Raises:
            CodeGenerationError: If the API cannot be loaded or rendered.
            OutputError: If the module cannot be written.
        """
        api_cls = load_api(self.config.api)
        emitter = ModuleEmitter(
            api_cls, source=self.config.api, docstrings=self.config.generate_docstrings
        )
        body = emitter.emit()
        self.writer.write_init_file(self.config.output)
        path = self.writer.write(body, self.output_path)
        logger.info(f'Generated {len(emitter.compiled)} endpoint function(s) in {path}')
        return path
