from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _distribution_version

try:
    version = _distribution_version('declient')
except PackageNotFoundError:
    version = 'unknown'

__version__ = version
