import logging
import warnings

logger = logging.getLogger(__name__)


def deprecated_alias(old_name: str, new_name: str):
    """
    Build a method that forwards to `new_name` with a deprecation warning.

    Usage:
        class Client:
            def list_models(self): ...

            get_models = deprecated_alias("get_models", "list_models")
    """
    message = (
        f"{old_name}() was renamed to {new_name}(). "
        f"Support for {old_name}() will be removed in the next major release"
    )

    def alias(self, *args, **kwargs):
        logger.warning(message)
        warnings.warn(message, DeprecationWarning, stacklevel=2)
        return getattr(self, new_name)(*args, **kwargs)

    alias.__name__ = old_name
    alias.__qualname__ = old_name
    alias.__doc__ = f"Deprecated alias of {new_name}()."
    return alias
