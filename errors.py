"""Errors raised while building and balancing a production network."""


class NetworkError(Exception):
    """base class for every production network error"""


class CatalogLookupFailed(NetworkError, LookupError):
    """a recipe or part id is absent from the catalog"""


class RecipeNotSet(NetworkError, ValueError):
    """a machine was asked to assign or balance before it had a recipe"""


class MaterialNotSet(NetworkError, ValueError):
    """a supply was balanced before its material was set"""


class ConflictingMaterials(NetworkError, ValueError):
    """a merger received more than one distinct material"""


class TypeMismatch(NetworkError, ValueError):
    """two sockets cannot be paired, or a socket was used against its direction"""


class InvalidRecipe(NetworkError, ValueError):
    """a recipe's data does not fit the machine running it"""
