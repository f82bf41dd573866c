import json
import os
import re
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from declient.auth import BearerAuth

DEFAULT_FILENAMES = ['declient.yaml', 'declient.yml', 'declient.json']

_ENV_VAR_RE = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


class ClientSettings(BaseSettings):
    """Transport settings for owned clients.

    Every field can be set through a ``DECLIENT_`` prefixed environment
    variable, e.g. ``DECLIENT_TIMEOUT=5``.
    """

    model_config = SettingsConfigDict(env_prefix='DECLIENT_')

    timeout: float = Field(30.0, gt=0, description='Overall request timeout in seconds.')

    connect_timeout: float = Field(
        10.0, gt=0, description='Timeout for establishing a connection, in seconds.'
    )

    pool_max_idle_per_host: int = Field(
        32, ge=0, description='Maximum number of idle keep-alive connections.'
    )

    pool_idle_timeout: float | None = Field(
        90.0, description='Seconds an idle connection is kept alive.'
    )

    follow_redirects: bool = Field(False, description='Whether to follow redirects.')

    bearer_token: SecretStr | None = Field(
        None, description='Token sent as "Authorization: Bearer <token>".'
    )

    basic_username: str | None = Field(None, description='User name for basic authentication.')

    basic_password: SecretStr | None = Field(
        None, description='Password for basic authentication.'
    )

    @model_validator(mode='after')
    def _check_auth(self) -> 'ClientSettings':
        if self.bearer_token is not None and self.basic_username is not None:
            raise ValueError('bearer_token and basic_username are mutually exclusive')
        if self.basic_password is not None and self.basic_username is None:
            raise ValueError('basic_password requires basic_username')
        return self

    def httpx_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout, connect=self.connect_timeout)

    def httpx_limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_keepalive_connections=self.pool_max_idle_per_host,
            keepalive_expiry=self.pool_idle_timeout,
        )

    def httpx_auth(self) -> httpx.Auth | None:
        """The auth flow for the configured credentials, if any."""
        if self.bearer_token is not None:
            return BearerAuth(self.bearer_token.get_secret_value())
        if self.basic_username is not None:
            password = self.basic_password.get_secret_value() if self.basic_password else ''
            return httpx.BasicAuth(self.basic_username, password)
        return None


class DocumentConfig(BaseModel):
    """Represents a single API class to generate a client module for."""

    api: str = Field(
        ..., description="Import target of the API class, as 'package.module:ClassName'."
    )

    output: str = Field(..., description='Output directory for the generated code.')

    module_file: str = Field(
        'client.py', description='File name of the generated client module.'
    )

    generate_docstrings: bool = Field(
        True, description='Whether to copy endpoint docstrings into the generated code.'
    )

    @field_validator('api')
    @classmethod
    def _check_api(cls, value: str) -> str:
        module, _, name = value.partition(':')
        if not module.strip() or not name.strip():
            raise ValueError("api must look like 'package.module:ClassName'")
        return value

    @field_validator('output')
    @classmethod
    def _check_output(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('output must not be empty')
        return value

    @field_validator('module_file')
    @classmethod
    def _check_module_file(cls, value: str) -> str:
        if not value.endswith('.py'):
            raise ValueError('module_file must end with .py')
        return value


class CodegenConfig(BaseSettings):
    documents: list[DocumentConfig] = Field(
        ..., description='List of API classes to generate client modules for.'
    )

    @field_validator('documents')
    @classmethod
    def _check_documents(cls, value: list[DocumentConfig]) -> list[DocumentConfig]:
        if not value:
            raise ValueError('at least one document is required')
        return value


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    Unset variables without a default are left untouched.
    """

    def replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            return default
        return match.group(0)

    return _ENV_VAR_RE.sub(replace, value)


def _expand_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return _expand_env_vars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars_recursive(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict:
    import yaml

    return _expand_env_vars_recursive(yaml.safe_load(Path(path).read_text()) or {})


def load_json(path: str | Path) -> dict:
    return _expand_env_vars_recursive(json.loads(Path(path).read_text()))


def _load_file(path: str | Path) -> dict:
    if str(path).endswith('.json'):
        return load_json(path)
    return load_yaml(path)


def create_default_config() -> dict:
    """Return a starter configuration, as written to ``declient.yaml``."""
    return {
        'documents': [
            {
                'api': 'myproject.api:MyApi',
                'output': './generated',
                'module_file': 'client.py',
            }
        ]
    }


def get_config(path: str | None = None) -> CodegenConfig:
    """Load configuration from a file or the environment.

    Lookup order without an explicit path: the default file names in the
    working directory, ``[tool.declient]`` in ``pyproject.toml``, then the
    ``DECLIENT_API`` and ``DECLIENT_OUTPUT`` environment variables.
    """
    if path:
        return CodegenConfig.model_validate(_load_file(path))

    cwd = Path(os.getcwd())

    for filename in DEFAULT_FILENAMES:
        candidate = cwd / filename
        if candidate.exists():
            return CodegenConfig.model_validate(_load_file(candidate))

    pyproject_path = cwd / 'pyproject.toml'

    if pyproject_path.exists():
        import tomllib

        pyproject = tomllib.loads(pyproject_path.read_text())
        tools = pyproject.get('tool', {})

        if 'declient' in tools:
            return CodegenConfig.model_validate(
                _expand_env_vars_recursive(tools['declient'])
            )

    api = os.environ.get('DECLIENT_API')
    output = os.environ.get('DECLIENT_OUTPUT')
    if api and output:
        return CodegenConfig(documents=[DocumentConfig(api=api, output=output)])

    raise FileNotFoundError('config not found')
