from dataclasses import dataclass, field
from typing import Any

from activerecord.database.Exceptions import HasManyThroughAssociationException, RelationshipException
from activerecord.database.QueryBuilder import QueryBuilder
from activerecord.database.active_record.utils.Inflector import classify, keyify, variablize
from activerecord.database.active_record.utils.ModelCollection import ModelCollection
from activerecord.database.active_record.utils.Utils import add_condition, all_none, wrap_in_list

# column alias carrying the owner key in has_many through eager loads
THROUGH_KEY = "ar_through_key__"


@dataclass
class Association:
    """
    A relationship declaration. The relationship object itself is built when the
    owner's Table is first loaded, so the target class only has to exist by then.
    """
    kind: type
    name: str
    options: dict[str, Any] = field(default_factory=dict)

    def build(self) -> "AbstractRelationship":
        return self.kind(self.name, **self.options)


def belongs_to(name: str, **options) -> Association:
    return Association(BelongsTo, name, options)


def has_many(name: str, **options) -> Association:
    """
        has_many("events", order="id asc")
        has_many("hosts", through="events")
    """
    return Association(HasMany, name, options)


def has_one(name: str, **options) -> Association:
    return Association(HasOne, name, options)


def has_and_belongs_to_many(name: str, **options) -> Association:
    return Association(HasAndBelongsToMany, name, options)


def delegate(*attributes: str, to: str, prefix: str | None = None) -> dict[str, Any]:
    """Forward ``attributes`` to the relationship named ``to``, optionally read as ``prefix_attribute``."""
    return {"to": to, "prefix": prefix, "delegate": list(attributes)}


class AbstractRelationship:
    VALID_ASSOCIATION_OPTIONS = ("class_name", "class", "foreign_key", "conditions", "select", "readonly")
    EXTRA_ASSOCIATION_OPTIONS: tuple[str, ...] = ()

    poly_relationship = False

    def __init__(self, attribute_name: str, **options):
        if "class_" in options:
            options["class"] = options.pop("class_")

        self.attribute_name = attribute_name
        self.options = self.merge_association_options(options)
        self.class_name: str | None = None
        self.klass: type | None = None
        self.foreign_key: list[str] = []
        self.primary_key: list[str] = []

        if isinstance(self.options.get("conditions"), str):
            self.options["conditions"] = [self.options["conditions"]]

        if "class" in self.options:
            self.set_class_name(self.options["class"])
        elif "class_name" in self.options:
            self.set_class_name(self.options["class_name"])

        self.attribute_name = variablize(self.attribute_name).lower()

        if self.options.get("foreign_key"):
            self.foreign_key = wrap_in_list(self.options["foreign_key"])

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.attribute_name} -> {self.class_name}>"

    def get_table(self):
        from activerecord.database.Table import Table
        return Table.load(self.klass)

    def is_poly(self) -> bool:
        return self.poly_relationship

    def load(self, model):
        raise NotImplementedError

    def load_eagerly(self, models, attributes, includes, table):
        raise NotImplementedError

    def build_association(self, model, attributes: dict[str, Any] | None = None):
        return self.klass(attributes or {})

    def create_association(self, model, attributes: dict[str, Any] | None = None):
        record = self.klass.create(attributes or {})
        return self.append_record_to_associate(model, record)

    def append_record_to_associate(self, associate, record):
        if self.poly_relationship:
            current = getattr(associate, self.attribute_name)
            association = current if current is not None else ModelCollection()
            association.append(record)
            associate.set_relationship(self.attribute_name, association)
        else:
            associate.set_relationship(self.attribute_name, record)
        return record

    def merge_association_options(self, options: dict[str, Any]) -> dict[str, Any]:
        available = self.VALID_ASSOCIATION_OPTIONS + self.EXTRA_ASSOCIATION_OPTIONS
        return {key: value for key, value in options.items() if key in available}

    @staticmethod
    def unset_non_finder_options(options: dict[str, Any]) -> dict[str, Any]:
        from activerecord.database.ActiveRecord import Model
        return {key: value for key, value in options.items() if key in Model.VALID_OPTIONS}

    def set_inferred_class_name(self):
        self.set_class_name(classify(self.attribute_name, singular=isinstance(self, HasMany)))

    def set_class_name(self, class_name):
        from activerecord.database.ActiveRecord import Model, models

        klass = class_name if isinstance(class_name, type) else models.get(class_name)
        name = class_name.__name__ if isinstance(class_name, type) else class_name

        if klass is None or not issubclass(klass, Model):
            raise RelationshipException(f"'{name}' must extend from Model")

        self.class_name = klass.__name__
        self.klass = klass

    def create_conditions_from_keys(self, model, condition_keys: list[str], value_keys: list[str]) -> list[Any] | None:
        condition_string = "_and_".join(condition_keys)
        condition_values = list(model.get_values_for(value_keys).values())

        # all keys null: the query could only ever match "IS NULL" rows
        if all_none(condition_values):
            return None

        conditions = QueryBuilder.create_conditions_from_underscored_string(
            model.connection(), condition_string, condition_values
        )
        return add_condition(self.options.get("conditions") or [], conditions)

    def construct_inner_join_sql(self, from_table, using_through: bool = False, alias: str | None = None) -> str:
        """
        INNER JOIN clause for this relationship, starting from ``from_table``.

        With ``using_through`` the target table becomes the "from" side and ``from_table``
        is the intermediate table being joined.
        """
        from activerecord.database.Table import Table

        if using_through:
            join_table_name = from_table.get_fully_qualified_table_name()
            from_table_name = Table.load(self.klass).get_fully_qualified_table_name()
        else:
            join_table_name = Table.load(self.klass).get_fully_qualified_table_name()
            from_table_name = from_table.get_fully_qualified_table_name()

        # the key lives on the other table for has_many/has_one
        if isinstance(self, HasMany):
            if using_through:
                fk, pk = self.keys_for(self.klass, override=True)
            else:
                fk, pk = self.keys_for(from_table.klass)
            foreign_key, join_primary_key = pk[0], fk[0]
        else:
            foreign_key, join_primary_key = self.foreign_key[0], self.primary_key[0]

        if alias is not None:
            aliased_join_table_name = alias = self.get_table().conn.quote_name(alias)
            alias += " "
        else:
            aliased_join_table_name = join_table_name
            alias = ""

        return (f"INNER JOIN {join_table_name} {alias}"
                f"ON({from_table_name}.{foreign_key} = {aliased_join_table_name}.{join_primary_key})")

    def query_and_attach_related_models_eagerly(self, table, models, attributes, includes,
                                                query_keys: list[str], model_values_keys: list[str],
                                                options: dict[str, Any] | None = None,
                                                conditions: list[Any] | None = None, drop_query_key: bool = False):
        query_key = query_keys[0]
        model_values_key = variablize(model_values_keys[0])

        values = []
        for row in attributes:
            value = row.get(model_values_key)
            if value is not None and value not in values:
                values.append(value)

        if conditions is None:
            conditions = QueryBuilder.create_conditions_from_underscored_string(table.conn, query_key, [values])

        options = dict(self.options if options is None else options)
        if options.get("conditions") and len(options["conditions"][0]) > 1:
            options["conditions"] = add_condition(options["conditions"], conditions)
        else:
            options["conditions"] = conditions

        if includes:
            options["include"] = includes

        related_models = self.klass.find("all", **self.unset_non_finder_options(options))

        query_key = variablize(query_key)
        keyed_models = [(related.read_attribute(query_key), related) for related in related_models]
        if drop_query_key:
            for _, related in keyed_models:
                related.__attributes__.pop(query_key, None)

        used_models: set[int] = set()

        for model in models:
            matches = 0
            key_to_match = getattr(model, model_values_key)

            for related_key, related in keyed_models:
                if related_key == key_to_match:
                    if id(related) in used_models:
                        model.set_relationship_from_eager_load(related.clone(), self.attribute_name)
                    else:
                        model.set_relationship_from_eager_load(related, self.attribute_name)
                    used_models.add(id(related))
                    matches += 1

            if matches == 0:
                model.set_relationship_from_eager_load(None, self.attribute_name)


class HasMany(AbstractRelationship):
    """
    One-to-many association where the foreign key lives on the target table.

        class Venue(Model):
            __relationships__ = [
                has_many("events"),
                has_many("hosts", through="events"),
            ]
    """

    EXTRA_ASSOCIATION_OPTIONS = ("primary_key", "order", "group", "having", "limit", "offset", "through", "source")

    poly_relationship = True

    def __init__(self, attribute_name: str, **options):
        super().__init__(attribute_name, **options)

        self.through = self.options.get("through")
        if self.through and self.options.get("source"):
            self._set_source_class(self.options["source"])

        if self.options.get("primary_key"):
            self.primary_key = wrap_in_list(self.options["primary_key"])

        if not self.klass:
            self.set_inferred_class_name()

    def _set_source_class(self, source):
        from activerecord.database.ActiveRecord import models

        if isinstance(source, type) or source in models:
            self.set_class_name(source)
        else:
            self.set_class_name(classify(source, singular=True))

    def keys_for(self, model_class: type, override: bool = False) -> tuple[list[str], list[str]]:
        """Foreign and primary key columns of this relationship as seen from ``model_class``."""
        from activerecord.database.Table import Table

        fk = self.foreign_key if self.foreign_key and not override else [keyify(model_class.__name__)]
        pk = self.primary_key if self.primary_key and not override else Table.load(model_class).pk
        return fk, pk

    def get_through_relationship(self, model_class: type) -> AbstractRelationship:
        from activerecord.database.Table import Table

        relationship = Table.load(model_class).get_relationship(self.through)
        if relationship is None:
            raise HasManyThroughAssociationException(
                f"Could not find the association {self.through} in model {model_class.__name__}"
            )
        if not isinstance(relationship, (HasMany, BelongsTo)):
            raise HasManyThroughAssociationException(
                "has_many through can only use a belongs_to or has_many association"
            )
        return relationship

    def load(self, model):
        fk, pk = self.keys_for(model.__class__)
        options = self.unset_non_finder_options(self.options)

        if self.through:
            through_table = self.get_through_relationship(model.__class__).get_table()
            options["joins"] = self.construct_inner_join_sql(through_table, True)

        conditions = self.create_conditions_from_keys(model, fk, pk)
        if conditions is None:
            return None

        options["conditions"] = conditions
        return self.klass.find("all" if self.poly_relationship else "first", **options)

    def load_eagerly(self, models, attributes, includes, table):
        fk, pk = self.keys_for(table.klass)

        if not self.through:
            self.query_and_attach_related_models_eagerly(table, models, attributes, includes, fk, pk)
            return

        # the owner key sits on the through table, so select it alongside the target rows
        # under an alias that is dropped again once the rows are matched
        through_table = self.get_through_relationship(table.klass).get_table()
        through_name = through_table.get_fully_qualified_table_name()
        quoted_fk = table.conn.quote_name(fk[0])

        options = dict(self.options)
        options["joins"] = self.construct_inner_join_sql(through_table, True)
        options.setdefault(
            "select",
            f"{self.get_table().get_fully_qualified_table_name()}.*, {through_name}.{quoted_fk} AS {THROUGH_KEY}",
        )

        values = []
        for row in attributes:
            value = row.get(variablize(pk[0]))
            if value is not None and value not in values:
                values.append(value)

        conditions = [f"{through_name}.{quoted_fk} IN(?)", values]
        self.query_and_attach_related_models_eagerly(table, models, attributes, includes, [THROUGH_KEY], pk,
                                                     options=options, conditions=conditions, drop_query_key=True)

    def inject_foreign_key_for_new_association(self, model, attributes: dict[str, Any] | None) -> dict[str, Any]:
        attributes = dict(attributes or {})
        fk, pk = self.keys_for(model.__class__)
        key = variablize(fk[0])
        if key not in attributes:
            attributes[key] = getattr(model, pk[0])
        return attributes

    def build_association(self, model, attributes=None):
        return super().build_association(model, self.inject_foreign_key_for_new_association(model, attributes))

    def create_association(self, model, attributes=None):
        return super().create_association(model, self.inject_foreign_key_for_new_association(model, attributes))


class HasOne(HasMany):
    poly_relationship = False


class HasAndBelongsToMany(AbstractRelationship):
    # declared for completeness; join table traversal isn't supported
    poly_relationship = True

    def __init__(self, attribute_name: str, **options):
        super().__init__(attribute_name, **options)
        if not self.klass:
            self.set_class_name(classify(self.attribute_name, singular=True))

    def load(self, model):
        return None

    def load_eagerly(self, models, attributes, includes, table):
        raise RelationshipException(
            f"Eager loading is not supported for has_and_belongs_to_many: {self.attribute_name}"
        )


class BelongsTo(AbstractRelationship):
    """Association where this model's table holds the foreign key."""

    def __init__(self, attribute_name: str, **options):
        from activerecord.database.Table import Table

        super().__init__(attribute_name, **options)

        if not self.klass:
            self.set_inferred_class_name()

        if not self.foreign_key:
            self.foreign_key = [keyify(self.class_name)]

        self.primary_key = [Table.load(self.klass).pk[0]]

    def load(self, model):
        keys = [variablize(key) for key in self.foreign_key]

        conditions = self.create_conditions_from_keys(model, self.primary_key, keys)
        if conditions is None:
            return None

        options = self.unset_non_finder_options(self.options)
        options["conditions"] = conditions
        return self.klass.first(**options)

    def load_eagerly(self, models, attributes, includes, table):
        self.query_and_attach_related_models_eagerly(table, models, attributes, includes,
                                                     self.primary_key, self.foreign_key)
