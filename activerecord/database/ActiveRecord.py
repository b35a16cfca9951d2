import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Self, Type, TypeVar

from activerecord.database.Exceptions import (
    ActiveRecordException,
    RecordNotFound,
    RelationshipException,
    ReadOnlyException,
    UndefinedPropertyException,
)
from activerecord.database.QueryBuilder import QueryBuilder
from activerecord.database.Table import Table
from activerecord.database.Validations import Errors, Validations
from activerecord.database.active_record.Logging import logger
from activerecord.database.active_record.utils.Inflector import pluralize
from activerecord.database.active_record.utils.ModelCollection import ModelCollection
from activerecord.database.active_record.utils.Utils import is_hash, wrap_in_list

T = TypeVar("T", bound="Model")

# option names that can't be python keyword arguments
OPTION_ALIASES = {"from_": "from"}

FINDER_MODES = ("find_by", "find_all_by", "count_by", "find_or_create_by")


class ModelRegistry:
    """Every concrete model class, by class name and by ``module.QualName``."""

    def __init__(self):
        self._models: dict[str, type] = {}
        self._lock = threading.Lock()

    def register(self, klass: type) -> None:
        with self._lock:
            self._models[klass.__name__] = klass
            self._models[f"{klass.__module__}.{klass.__qualname__}"] = klass

    def get(self, name: str, default=None) -> type | None:
        return self._models.get(name, default)

    def __contains__(self, name) -> bool:
        return name in self._models


models = ModelRegistry()


class TransactionResult(Enum):
    COMMIT = "commit"
    ROLLBACK = "rollback"


class Resolution(Enum):
    ACCESSOR = "accessor"
    ATTRIBUTE = "attribute"
    RELATIONSHIP = "relationship"
    DELEGATE = "delegate"
    UNDEFINED = "undefined"


@dataclass
class FinderRequest:
    """
    A parsed dynamic finder: ``FinderRequest.parse("find_by", "name_and_city")``.

    ``fields`` and ``glue`` alternate the way they appear in the underscored string.
    """
    mode: str
    attributes: str
    fields: list[str] = field(default_factory=list)
    glue: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, mode: str, attributes: str) -> "FinderRequest":
        if mode not in FINDER_MODES:
            raise ActiveRecordException(f"Call to undefined method: {mode}_{attributes}")

        if mode == "find_or_create_by" and "_or_" in attributes.lower():
            raise ActiveRecordException("Cannot use OR'd attributes in find_or_create_by")

        parts = re.split(r"(_and_|_or_)", attributes, flags=re.I)
        return cls(mode, attributes, parts[0::2], [glue.strip("_").lower() for glue in parts[1::2]])


class ModelMeta(type):
    def __init__(cls, name, bases, attrs):
        super().__init__(name, bases, attrs)

        if not attrs.get("__abstract__", False):
            models.register(cls)


class Model(metaclass=ModelMeta):
    """
    Base class for table backed models.

        class Book(Model):
            __database__ = AppDatabase
            __primary_key__ = "book_id"
            __relationships__ = [belongs_to("author")]
            __validations__ = [validates_presence_of("name")]

        book = Book.find(1)
        book.name = "Ancient Art of Main Tanking"
        book.save()

    Attribute reads resolve, in order: a ``get_<name>`` method, an alias, a column
    value, a relationship (loaded lazily and cached), ``id`` for the primary key and
    finally a delegate. Writes follow the same path with ``set_<name>``.

    A column named like a model method (``count``, ``delete``, ...) is still written
    through plain assignment, but reads of it return the method; use
    ``read_attribute(name)`` or ``attributes()`` for those.
    """

    __abstract__: bool = True
    __database__ = None
    __table__: str = None
    __db_name__: str = None
    __primary_key__: str | list[str] = None
    __sequence__: str = None
    __relationships__: list = []
    __validations__: list = []
    __callbacks__: dict = {}
    __attr_accessible__: list[str] = []
    __attr_protected__: list[str] = []
    __alias_attribute__: dict[str, str] = {}
    __delegate__: list[dict] = []

    VALID_OPTIONS = ("conditions", "limit", "offset", "order", "select", "joins", "include", "readonly",
                     "group", "from", "having")

    errors: Optional[Errors] = None

    def __init__(self, attributes: dict[str, Any] | None = None, guard_attributes: bool = True,
                 instantiating_via_find: bool = False, new_record: bool = True, **kwargs: Any):
        self.__attributes__: dict[str, Any] = {}
        self.__dirty__: dict[str, bool] | None = None
        self.__readonly__ = False
        self.__loaded_relationships__: dict[str, Any] = {}
        self.__new_record__ = new_record

        if not instantiating_via_find:
            for column in self.table().columns.values():
                self.__attributes__[column.inflected_name] = column.default

        self.set_attributes_via_mass_assignment({**(attributes or {}), **kwargs}, guard_attributes)

        if instantiating_via_find:
            self.__dirty__ = {}

        self.invoke_callback("after_construct", False)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.__attributes__}>"

    def __copy__(self):
        return self.clone()

    # ----------------------------------------------------------------------
    # Attribute resolution
    # ----------------------------------------------------------------------

    def _accessor_for(self, name: str, prefix: str) -> Callable | None:
        method_name = f"{prefix}_{name}"
        for klass in type(self).__mro__:
            if klass is Model:
                break
            if method_name in vars(klass):
                return getattr(self, method_name)
        return None

    def _resolve(self, name: str, write: bool = False, accessors: bool = True) -> tuple[Resolution, Any]:
        aliases = self.__alias_attribute__ or {}

        if accessors and not (write and name in aliases):
            accessor = self._accessor_for(name, "set" if write else "get")
            if accessor is not None:
                return Resolution.ACCESSOR, accessor

        name = aliases.get(name, name)

        if name in self.__attributes__:
            return Resolution.ATTRIBUTE, name

        if not write:
            if name in self.__loaded_relationships__ or self.table().has_relationship(name):
                return Resolution.RELATIONSHIP, name

        if name == "id":
            pk = self.get_primary_key(True)
            if write or pk in self.__attributes__:
                return Resolution.ATTRIBUTE, pk

        for item in self.table().delegates:
            delegated_name = self._is_delegated(name, item)
            if delegated_name:
                return Resolution.DELEGATE, (item["to"], delegated_name)

        return Resolution.UNDEFINED, name

    @staticmethod
    def _is_delegated(name: str, delegate: dict[str, Any]) -> str | None:
        prefix = delegate.get("prefix")
        if prefix:
            if not name.startswith(f"{prefix}_"):
                return None
            name = name[len(prefix) + 1:]
        return name if name in delegate["delegate"] else None

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        kind, target = self._resolve(name)
        if kind is Resolution.ACCESSOR:
            return target()
        return self._read_resolved(kind, target)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or (hasattr(type(self), name) and not self._is_column_name(name)):
            object.__setattr__(self, name, value)
            return

        kind, target = self._resolve(name, write=True)
        if kind is Resolution.ACCESSOR:
            target(value)
        elif kind is Resolution.ATTRIBUTE:
            self.assign_attribute(target, value)
        elif kind is Resolution.DELEGATE:
            to, delegated_name = target
            setattr(getattr(self, to), delegated_name, value)
        else:
            raise UndefinedPropertyException(self.__class__.__name__, name)

    def _is_column_name(self, name: str) -> bool:
        attributes = self.__dict__.get("__attributes__", {})
        return (self.__alias_attribute__ or {}).get(name, name) in attributes

    def _read_resolved(self, kind: Resolution, target: Any) -> Any:
        if kind is Resolution.ATTRIBUTE:
            return self.__attributes__[target]

        if kind is Resolution.RELATIONSHIP:
            if target not in self.__loaded_relationships__:
                relationship = self.table().get_relationship(target)
                self.__loaded_relationships__[target] = relationship.load(self)
            return self.__loaded_relationships__[target]

        if kind is Resolution.DELEGATE:
            to, delegated_name = target
            associate = getattr(self, to)
            return getattr(associate, delegated_name) if associate else None

        raise UndefinedPropertyException(self.__class__.__name__, target)

    def read_attribute(self, name: str) -> Any:
        """Read ``name`` without consulting a ``get_<name>`` method."""
        kind, target = self._resolve(name, accessors=False)
        return self._read_resolved(kind, target)

    def has_attribute(self, name: str) -> bool:
        return name in self.__attributes__ or name in (self.__alias_attribute__ or {})

    def assign_attribute(self, name: str, value: Any) -> Any:
        column = self.table().columns.get(name)
        if column is not None:
            value = column.cast(value, self.connection())

        self.__attributes__[name] = value
        self.flag_dirty(name)
        return value

    def flag_dirty(self, name: str) -> None:
        if not self.__dirty__:
            self.__dirty__ = {}
        self.__dirty__[name] = True

    def dirty_attributes(self) -> dict[str, Any] | None:
        if not self.__dirty__:
            return None
        dirty = {name: value for name, value in self.__attributes__.items() if name in self.__dirty__}
        return dirty or None

    def attribute_is_dirty(self, attribute: str) -> bool:
        return bool(self.__dirty__ and self.__dirty__.get(attribute) and attribute in self.__attributes__)

    def is_dirty(self) -> bool:
        return bool(self.__dirty__)

    def reset_dirty(self) -> None:
        self.__dirty__ = None

    def attributes(self) -> dict[str, Any]:
        return self.__attributes__

    def get_primary_key(self, first: bool = False) -> list[str] | str:
        pk = self.table().pk
        return pk[0] if first else pk

    def get_real_attribute_name(self, name: str) -> str | None:
        if name in self.__attributes__:
            return name
        return (self.__alias_attribute__ or {}).get(name)

    def get_validation_rules(self) -> dict[str, list[dict[str, Any]]]:
        return Validations(self).rules()

    def get_values_for(self, attributes: list[str]) -> dict[str, Any]:
        """Raw column values for the names that exist; unknown names are skipped."""
        return {name: self.__attributes__[name] for name in attributes if name in self.__attributes__}

    def values_for(self, attribute_names: list[str]) -> dict[str, Any]:
        return {name: getattr(self, name) for name in attribute_names}

    def values_for_pk(self) -> dict[str, Any]:
        return self.values_for(self.table().pk)

    def is_readonly(self) -> bool:
        return self.__readonly__

    def is_new_record(self) -> bool:
        return self.__new_record__

    def readonly(self, readonly: bool = True) -> None:
        self.__readonly__ = readonly

    def verify_not_readonly(self, method_name: str) -> None:
        if self.is_readonly():
            raise ReadOnlyException(self.__class__.__name__, method_name)

    # ----------------------------------------------------------------------
    # Relationships
    # ----------------------------------------------------------------------

    def set_relationship(self, name: str, value: Any) -> None:
        self.__loaded_relationships__[name] = value

    def set_relationship_from_eager_load(self, model: Optional["Model"], name: str):
        table = self.table()
        rel = table.get_relationship(name)
        if rel is None:
            raise RelationshipException(
                f"Relationship named {name} has not been declared for class: {self.__class__.__name__}"
            )

        if not rel.is_poly():
            self.__loaded_relationships__[name] = model
        elif model is None:
            # an empty collection keeps later reads from lazy loading
            self.__loaded_relationships__[name] = ModelCollection()
        else:
            self.__loaded_relationships__.setdefault(name, ModelCollection()).append(model)
        return self.__loaded_relationships__[name]

    def _association(self, name: str):
        table = self.table()
        association = table.get_relationship(name)
        if association is None:
            association = table.get_relationship(pluralize(name))
        if association is None:
            raise ActiveRecordException(f"Call to undefined association: {name}")

        # load it first so a created record isn't fetched twice
        getattr(self, association.attribute_name)
        return association

    def build_association(self, name: str, attributes: dict[str, Any] | None = None) -> "Model":
        return self._association(name).build_association(self, attributes)

    def create_association(self, name: str, attributes: dict[str, Any] | None = None) -> "Model":
        return self._association(name).create_association(self, attributes)

    # ----------------------------------------------------------------------
    # Class level plumbing
    # ----------------------------------------------------------------------

    @classmethod
    def table(cls) -> Table:
        return Table.load(cls)

    @classmethod
    def connection(cls):
        return cls.table().conn

    @classmethod
    def reestablish_connection(cls):
        return cls.table().reestablish_connection()

    @classmethod
    def table_name(cls) -> str:
        return cls.table().table

    def invoke_callback(self, method_name: str, must_exist: bool = True) -> bool:
        return self.table().callback.invoke(self, method_name, must_exist)

    # ----------------------------------------------------------------------
    # Persistence
    # ----------------------------------------------------------------------

    @classmethod
    def create(cls: Type[T], attributes: dict[str, Any] | None = None, validate: bool = True, **kwargs: Any) -> T:
        model = cls(attributes, **kwargs)
        model.save(validate)
        return model

    def save(self, validate: bool = True) -> bool:
        self.verify_not_readonly("save")
        return self._insert(validate) if self.is_new_record() else self._update(validate)

    def _insert(self, validate: bool = True) -> bool:
        self.verify_not_readonly("insert")

        if (validate and not self._validate()) or not self.invoke_callback("before_create", False):
            return False

        table = self.table()
        attributes = self.dirty_attributes() or dict(self.__attributes__)
        pk = self.get_primary_key(True)
        column = table.get_column_by_inflected_name(pk)
        use_sequence = False

        if table.sequence and attributes.get(pk) is None:
            attributes.pop(pk, None)
            table.insert(attributes, pk, table.sequence)
            use_sequence = True
        else:
            if attributes.get(pk) is None and column is not None and column.auto_increment:
                attributes.pop(pk, None)
            table.insert(attributes)

        if (column is not None and column.auto_increment) or use_sequence:
            self.__attributes__[pk] = self.connection().insert_id(table.sequence)

        self.invoke_callback("after_create", False)
        self.__new_record__ = False
        return True

    def _update(self, validate: bool = True) -> bool:
        self.verify_not_readonly("update")

        if validate and not self._validate():
            return False

        if self.is_dirty():
            pk = self.values_for_pk()
            if not pk:
                raise ActiveRecordException(f"Cannot update, no primary key defined for: {self.__class__.__name__}")

            if not self.invoke_callback("before_update", False):
                return False

            self.table().update(self.dirty_attributes(), pk)
            self.invoke_callback("after_update", False)
        return True

    def delete(self) -> bool:
        self.verify_not_readonly("delete")

        pk = self.values_for_pk()
        if not pk:
            raise ActiveRecordException(f"Cannot delete, no primary key defined for: {self.__class__.__name__}")

        if not self.invoke_callback("before_destroy", False):
            return False

        self.table().delete(pk)
        self.invoke_callback("after_destroy", False)
        return True

    @classmethod
    def delete_all(cls, conditions=None, limit: int | None = None, order: str | None = None) -> int:
        """
        Delete matching rows without instantiating them; returns the affected row count.

            Author.delete_all(conditions=["name=?", "Tito"])
        """
        table = cls.table()
        conn = cls.connection()
        sql = QueryBuilder(conn, table.get_fully_qualified_table_name())

        if isinstance(conditions, (list, tuple)):
            sql.delete(*conditions)
        elif conditions is None:
            sql.delete()
        else:
            sql.delete(conditions)

        if limit:
            sql.limit(limit)
        if order:
            sql.order(order)

        table.last_sql = sql.to_s()
        return conn.query(table.last_sql, sql.bind_values()).rowcount

    @classmethod
    def update_all(cls, set: dict[str, Any] | str, conditions=None, limit: int | None = None,
                   order: str | None = None) -> int:
        table = cls.table()
        conn = cls.connection()
        sql = QueryBuilder(conn, table.get_fully_qualified_table_name())
        sql.update(set)

        if conditions:
            if isinstance(conditions, (list, tuple)):
                sql.where(*conditions)
            else:
                sql.where(conditions)

        if limit:
            sql.limit(limit)
        if order:
            sql.order(order)

        table.last_sql = sql.to_s()
        return conn.query(table.last_sql, sql.bind_values()).rowcount

    def _validate(self) -> bool:
        validator = Validations(self)
        validation_on = "validation_on_" + ("create" if self.is_new_record() else "update")

        for callback in ("before_validation", f"before_{validation_on}"):
            if not self.invoke_callback(callback, False):
                return False

        object.__setattr__(self, "errors", validator.get_record())
        validator.validate()

        for callback in ("after_validation", f"after_{validation_on}"):
            self.invoke_callback(callback, False)

        return self.errors.is_empty()

    def validate(self) -> None:
        """Override to add errors that don't fit a declared rule."""
        pass

    def is_valid(self) -> bool:
        return self._validate()

    def is_invalid(self) -> bool:
        return not self._validate()

    def set_timestamps(self) -> None:
        now = datetime.now().replace(microsecond=0)

        if self.has_attribute("updated_at"):
            self.updated_at = now

        if self.has_attribute("created_at") and self.is_new_record():
            self.created_at = now

    def update_attributes(self, attributes: dict[str, Any]) -> bool:
        self.set_attributes(attributes)
        return self.save()

    def update_attribute(self, name: str, value: Any) -> bool:
        setattr(self, name, value)
        return self._update(False)

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        self.set_attributes_via_mass_assignment(attributes, True)

    def set_attributes_via_mass_assignment(self, attributes: dict[str, Any], guard_attributes: bool) -> None:
        table = self.table()
        connection = self.connection()
        accessible = self.__attr_accessible__ or []
        protected = self.__attr_protected__ or []
        exceptions = []

        for name, value in attributes.items():
            column = table.columns.get(name)
            if column is not None:
                value = column.cast(value, connection)
                name = column.inflected_name

            if guard_attributes:
                if accessible and name not in accessible:
                    continue
                if protected and name in protected:
                    continue

                if name.startswith("_") or (hasattr(type(self), name) and not self._is_column_name(name)):
                    exceptions.append(name)
                    continue
                try:
                    setattr(self, name, value)
                except UndefinedPropertyException as e:
                    exceptions.append(e.property_name)
            else:
                # oracle row limiting artifact
                if name == "ar_rnum__":
                    continue
                self.assign_attribute(name, value)

        if exceptions:
            raise UndefinedPropertyException(self.__class__.__name__, exceptions)

    def reload(self) -> Self:
        self.__loaded_relationships__ = {}
        pk = list(self.get_values_for(self.get_primary_key()).values())
        fresh = self.__class__.find(pk[0])
        self.set_attributes_via_mass_assignment(fresh.attributes(), False)
        self.reset_dirty()
        return self

    def clone(self) -> Self:
        """A copy with its own attributes, no loaded relationships and nothing dirty."""
        klass = self.__class__
        copy = klass.__new__(klass)
        copy.__dict__.update(self.__dict__)
        copy.__attributes__ = dict(self.__attributes__)
        copy.__loaded_relationships__ = {}
        copy.__dirty__ = None
        return copy

    def to_dict(self, only: list[str] | None = None, except_: list[str] | None = None,
                include=None) -> dict[str, Any]:
        """
        Plain dict of attributes, optionally with related models:

            venue.to_dict(only=["name"], include={"events": {"only": ["title"]}})
        """
        data = dict(self.__attributes__)
        if only:
            data = {name: value for name, value in data.items() if name in wrap_in_list(only)}
        if except_:
            data = {name: value for name, value in data.items() if name not in wrap_in_list(except_)}

        includes = include if is_hash(include) else {name: {} for name in wrap_in_list(include)}
        for name, options in includes.items():
            related = getattr(self, name)
            if related is None:
                data[name] = None
            elif isinstance(related, list):
                data[name] = [model.to_dict(**(options or {})) for model in related]
            else:
                data[name] = related.to_dict(**(options or {}))
        return data

    # ----------------------------------------------------------------------
    # Finders
    # ----------------------------------------------------------------------

    @classmethod
    def is_options_hash(cls, value: Any, throw: bool = True) -> bool:
        if is_hash(value):
            keys = list(value)
            diff = [key for key in keys if key not in cls.VALID_OPTIONS]
            if diff and throw:
                raise ActiveRecordException("Unknown key(s): " + ", ".join(diff))
            return any(key in cls.VALID_OPTIONS for key in keys)
        return False

    @classmethod
    def extract_and_validate_options(cls, args: list, options: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Pull finder options out of a trailing dict positional argument and/or keyword
        arguments. A trailing dict with unknown keys is taken as a conditions hash.
        """
        extracted: dict[str, Any] = {}

        if args:
            last = args[-1]
            try:
                if cls.is_options_hash(last):
                    args.pop()
                    extracted = dict(last)
            except ActiveRecordException:
                if not is_hash(last):
                    raise
                extracted = {"conditions": last}

        if options:
            options = {OPTION_ALIASES.get(key, key): value for key, value in options.items()}
            cls.is_options_hash(options)
            extracted.update(options)
        return extracted

    @classmethod
    def find(cls, *args: Any, **options: Any):
        """
        Find by primary key(s) or by mode.

            Author.find(3)                          # one model or RecordNotFound
            Author.find(1, 2)                       # list, all must exist
            Author.find("first", conditions=["name=?", "Tito"])
            Author.find("all", order="name", include="books")
            Author.find("last")
        """
        if not args and not options:
            raise RecordNotFound(f"Couldn't find {cls.__name__} without an ID")

        args = list(args)
        options = cls.extract_and_validate_options(args, options)
        num_args = len(args)
        single = True

        if num_args > 0 and isinstance(args[0], str) and args[0] in ("all", "first", "last"):
            mode = args[0]
            if mode == "all":
                single = False
            else:
                if mode == "last":
                    if "order" not in options:
                        options["order"] = " DESC, ".join(cls.table().pk) + " DESC"
                    else:
                        options["order"] = QueryBuilder.reverse_order(options["order"])
                options["limit"] = 1
                options["offset"] = 0

            args = args[1:]
            num_args -= 1
        elif num_args == 1:
            args = args[0]

        if num_args > 0 and "conditions" not in options:
            return cls.find_by_pk(args, options)

        options["mapped_names"] = cls.__alias_attribute__
        found = cls.table().find(options)

        if not single:
            return found
        return found[0] if found else None

    @classmethod
    def find_by_pk(cls, values, options: dict[str, Any] | None = None):
        options = dict(options or {})
        options["conditions"] = cls.pk_conditions(values)
        found = cls.table().find(options)

        many = isinstance(values, (list, tuple))
        expected = len(values) if many else 1
        results = len(found)

        if results != expected:
            if expected == 1:
                ids = ",".join(str(v) for v in wrap_in_list(values))
                raise RecordNotFound(f"Couldn't find {cls.__name__} with ID={ids}")

            ids = ",".join(str(v) for v in values)
            raise RecordNotFound(
                f"Couldn't find all {cls.__name__} with IDs ({ids}) "
                f"(found {results}, but was looking for {expected})"
            )
        return found if many else found[0]

    @classmethod
    def pk_conditions(cls, values) -> dict[str, Any]:
        return {cls.table().pk[0]: values}

    @classmethod
    def all(cls, *args: Any, **options: Any) -> ModelCollection:
        return cls.find("all", *args, **options)

    @classmethod
    def first(cls, *args: Any, **options: Any):
        return cls.find("first", *args, **options)

    @classmethod
    def last(cls, *args: Any, **options: Any):
        return cls.find("last", *args, **options)

    @classmethod
    def count(cls, *args: Any, **options: Any) -> int:
        args = list(args)
        options = cls.extract_and_validate_options(args, options)
        options["select"] = "COUNT(*)"

        if args and args[0] is not None and args[0] != [] and args[0] != {}:
            if is_hash(args[0]):
                options["conditions"] = args[0]
            else:
                options["conditions"] = cls.pk_conditions(args[0] if len(args) == 1 else args)

        table = cls.table()
        sql = table.options_to_sql(options)
        return cls.connection().query_and_fetch_one(sql.to_s(), table.process_data(sql.get_where_values()))

    @classmethod
    def exists(cls, *args: Any, **options: Any) -> bool:
        return cls.count(*args, **options) > 0

    @classmethod
    def find_by_sql(cls, sql: str, values: list[Any] | None = None) -> ModelCollection:
        return cls.table().find_by_sql(sql, values, True)

    @classmethod
    def query(cls, sql: str, values: list[Any] | None = None):
        return cls.connection().query(sql, values)

    # ----------------------------------------------------------------------
    # Dynamic finders
    # ----------------------------------------------------------------------

    @classmethod
    def find_by(cls, attributes: str, *values: Any, **options: Any):
        """
            Author.find_by("name", "Tito")
            Author.find_by("name_and_author_id", "Tito", 1, order="name")
        """
        return cls.dispatch_finder(FinderRequest.parse("find_by", attributes), values, options)

    @classmethod
    def find_all_by(cls, attributes: str, *values: Any, **options: Any) -> ModelCollection:
        return cls.dispatch_finder(FinderRequest.parse("find_all_by", attributes), values, options)

    @classmethod
    def count_by(cls, attributes: str, *values: Any, **options: Any) -> int:
        return cls.dispatch_finder(FinderRequest.parse("count_by", attributes), values, options)

    @classmethod
    def find_or_create_by(cls, attributes: str, *values: Any, **options: Any):
        return cls.dispatch_finder(FinderRequest.parse("find_or_create_by", attributes), values, options)

    @classmethod
    def dispatch_finder(cls, request: FinderRequest, values, options: dict[str, Any]):
        values = list(values)
        options = cls.extract_and_validate_options(values, options)
        aliases = cls.__alias_attribute__

        options["conditions"] = QueryBuilder.create_conditions_from_underscored_string(
            cls.connection(), request.attributes, values, aliases
        )

        if request.mode == "find_all_by":
            return cls.find("all", **options)

        if request.mode == "count_by":
            return cls.count(**options)

        found = cls.find("first", **options)
        if found is None and request.mode == "find_or_create_by":
            return cls.create(QueryBuilder.create_hash_from_underscored_string(request.attributes, values, aliases))
        return found

    # ----------------------------------------------------------------------
    # Transactions
    # ----------------------------------------------------------------------

    @classmethod
    def transaction(cls, unit_of_work: Callable[[], Any]) -> bool:
        """
        Run ``unit_of_work`` inside a transaction.

        Returning ``TransactionResult.ROLLBACK`` (or ``False``) rolls back and returns False.
        An exception rolls back and is re-raised. Anything else commits and returns True.
        """
        connection = cls.connection()
        connection.transaction()

        try:
            result = unit_of_work()
        except Exception:
            connection.rollback()
            logger.debug("Transaction rolled back")
            raise

        if result is False or result is TransactionResult.ROLLBACK:
            connection.rollback()
            return False

        connection.commit()
        return True
