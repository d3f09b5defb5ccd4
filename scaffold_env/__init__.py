"""
scaffold-env - Namespace resolution and generator composition for scaffolding tools.
"""

__version__ = "1.0.0"

from .api import GeneratorApi
from .compose import ComposeContext
from .compose import SharedState
from .environment import Environment
from .events import LoadEvents
from .exceptions import EnvironmentPreparationError
from .exceptions import GeneratorLoadError
from .exceptions import GeneratorNotFoundError
from .exceptions import GeneratorRequiredError
from .exceptions import InvalidNamespaceError
from .exceptions import MalformedNamespaceError
from .exceptions import NoMethodsSpecifiedError
from .exceptions import NotLoadedError
from .exceptions import ScaffoldEnvError
from .exceptions import UnknownOperationError
from .exceptions import WildcardNotAllowedError
from .generator import Generator
from .generator import public
from .interfaces import GeneratorProtocol
from .interfaces import LookupProtocol
from .interfaces import PackageRepositoryProtocol
from .interfaces import RegistryClientProtocol
from .interfaces import TaskQueueProtocol
from .models import GeneratorMeta
from .models import LookupOptions
from .models import PackageMetadata
from .namespace import Namespace
from .namespace import parse_namespace
from .namespace import to_complete
from .namespace import to_id
from .settings import EnvironmentSettings
from .settings import load_settings

__all__ = [
    "Environment",
    "ComposeContext",
    "SharedState",
    "LoadEvents",
    "GeneratorApi",
    # Generators
    "Generator",
    "public",
    # Namespaces
    "Namespace",
    "parse_namespace",
    "to_id",
    "to_complete",
    # Collaborator protocols
    "GeneratorProtocol",
    "LookupProtocol",
    "PackageRepositoryProtocol",
    "RegistryClientProtocol",
    "TaskQueueProtocol",
    "GeneratorMeta",
    "LookupOptions",
    "PackageMetadata",
    "EnvironmentSettings",
    "load_settings",
    # Errors
    "ScaffoldEnvError",
    "InvalidNamespaceError",
    "NotLoadedError",
    "WildcardNotAllowedError",
    "MalformedNamespaceError",
    "NoMethodsSpecifiedError",
    "GeneratorRequiredError",
    "UnknownOperationError",
    "GeneratorNotFoundError",
    "GeneratorLoadError",
    "EnvironmentPreparationError",
]
