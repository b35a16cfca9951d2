class ActiveRecordException(Exception):
    """Base class for every error raised by the ORM."""
    pass


class RecordNotFound(ActiveRecordException):
    # Raised when a primary key lookup returns fewer rows than requested
    def __init__(self, message="Couldn't find record"):
        super().__init__(message)


class DatabaseException(ActiveRecordException):
    """
    Wraps an error raised by the underlying database driver.

    Args:
        error: the native driver exception (or a message string).
    """

    def __init__(self, error):
        self.native = error if isinstance(error, BaseException) else None
        self.code = getattr(error, "errno", None) or getattr(error, "sqlstate", None)
        super().__init__(str(error))


class ModelException(ActiveRecordException):
    pass


class ExpressionsException(ActiveRecordException):
    pass


class ConfigException(ActiveRecordException):
    pass


class UndefinedPropertyException(ModelException, AttributeError):
    """
    Raised when an attribute, relationship or delegate name cannot be resolved.
    Mass assignment collects every failure and raises a single instance with a list.
    """

    def __init__(self, class_name: str, property_name):
        self.class_name = class_name
        self.property_name = property_name
        if isinstance(property_name, (list, tuple)):
            message = "\r\n".join(f"Undefined property: {class_name}->{name}" for name in property_name)
        else:
            message = f"Undefined property: {class_name}->{property_name}"
        super().__init__(message)


class ReadOnlyException(ModelException):
    def __init__(self, class_name: str, method_name: str):
        self.class_name = class_name
        self.method_name = method_name
        super().__init__(
            f"{class_name}::{method_name}() cannot be invoked because this model is set to read only"
        )


class ValidationsArgumentError(ActiveRecordException):
    pass


class RelationshipException(ActiveRecordException):
    pass


class HasManyThroughAssociationException(RelationshipException):
    pass
