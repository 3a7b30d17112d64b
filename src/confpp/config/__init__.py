from .config import Config, ConfigContext, OVERRIDE_ENV_VAR, get_config_ref
from .environment import EnvironmentVars
from .errors import ConfigError, ConfigFormatError, MacroRecursionError
from .keystore import KeyStore, combine_keys
from .macros import MacroTable, expand_references
from .parsing import ANY_BINDING, NetworkBinding, Parseable
from .preprocessor import Preprocessor, preprocess
from .provider import ConfigProvider, ProviderRequest
from .rewriter import ConfigRewriter, edit_macro

__all__ = [
	"Config",
	"ConfigContext",
	"OVERRIDE_ENV_VAR",
	"get_config_ref",
	"EnvironmentVars",
	"ConfigError",
	"ConfigFormatError",
	"MacroRecursionError",
	"KeyStore",
	"combine_keys",
	"MacroTable",
	"expand_references",
	"ANY_BINDING",
	"NetworkBinding",
	"Parseable",
	"Preprocessor",
	"preprocess",
	"ConfigProvider",
	"ProviderRequest",
	"ConfigRewriter",
	"edit_macro",
]
