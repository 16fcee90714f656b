import functools

import config


class ConfigurationError(Exception):
    ...


class InvalidPermissionSetError(ConfigurationError):
    ...


class InvalidRoleRuleError(ConfigurationError):
    ...


class DuplicatePermissionSetError(ConfigurationError):
    ...


class UnknownPermissionSetError(ConfigurationError):
    ...


class MalformedAccountRecordError(ConfigurationError):
    ...


class DuplicateAccountError(ConfigurationError):
    ...


class InventoryNotFound(ConfigurationError):
    ...


def handle_errors(fn):  # noqa: ANN001, ANN201
    # config imports this module, so the logger is created once config is fully loaded
    logger = config.get_logger(service="errors")

    # Resolution is all-or-nothing: log what broke and let the invocation fail.
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
        try:
            return fn(*args, **kwargs)
        except ConfigurationError as e:
            logger.exception("Identity Center configuration is invalid", exc_info=e)
            raise
        except Exception as e:
            logger.exception("An error occurred:", exc_info=e)
            raise

    return wrapper
