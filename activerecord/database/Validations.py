import re
from dataclasses import dataclass, field
from typing import Any, Callable

from activerecord.database.Exceptions import ValidationsArgumentError
from activerecord.database.active_record.utils.Inflector import humanize
from activerecord.database.active_record.utils.Utils import is_blank, is_odd

VALIDATORS: dict[str, Callable] = {}

ALL_RANGE_OPTIONS = ("is", "within", "in", "minimum", "maximum")

ALL_NUMERICALITY_CHECKS = (
    "greater_than",
    "greater_than_or_equal_to",
    "equal_to",
    "less_than",
    "less_than_or_equal_to",
    "odd",
    "even",
)

# python keywords can't be keyword arguments
OPTION_ALIASES = {"in_": "in", "with_": "with", "is_": "is"}


def register_validator(name):
    def wrapper(fn):
        VALIDATORS[name] = fn
        return fn

    return wrapper


@dataclass
class Rule:
    """One ``validates_*_of`` declaration: a validator name, its attributes and options."""
    validator: str
    attributes: tuple
    options: dict[str, Any] = field(default_factory=dict)

    def applies_to(self, model) -> bool:
        on = self.options.get("on", "save")
        if on == "create":
            return model.is_new_record()
        if on == "update":
            return not model.is_new_record()
        return True


def _rule(validator: str, attributes: tuple, options: dict[str, Any]) -> Rule:
    if not attributes:
        raise ValidationsArgumentError(f"validates_{validator}_of requires at least one attribute")
    options = {OPTION_ALIASES.get(key, key): value for key, value in options.items()}
    return Rule(validator, tuple(attributes), options)


def validates_presence_of(*attributes, **options) -> Rule:
    return _rule("presence", attributes, options)


def validates_length_of(*attributes, **options) -> Rule:
    """
    Exactly one range option is required: ``is``, ``within``, ``in``, ``minimum`` or ``maximum``.

        validates_length_of("name", within=(1, 10), too_long="way too long")
    """
    return _rule("length", attributes, options)


validates_size_of = validates_length_of


def validates_inclusion_of(*attributes, **options) -> Rule:
    return _rule("inclusion", attributes, options)


def validates_exclusion_of(*attributes, **options) -> Rule:
    return _rule("exclusion", attributes, options)


def validates_format_of(*attributes, **options) -> Rule:
    return _rule("format", attributes, options)


def validates_numericality_of(*attributes, **options) -> Rule:
    return _rule("numericality", attributes, options)


def validates_uniqueness_of(*attributes, **options) -> Rule:
    """Pass a tuple of names to require the combination to be unique."""
    return _rule("uniqueness", attributes, options)


class Validations:
    """
    Runs a model's declared rules and collects failures into an ``Errors`` object.

        class Book(Model):
            __validations__ = [
                validates_presence_of("title"),
                validates_numericality_of("price", greater_than=0, allow_null=True),
            ]
    """

    def __init__(self, model):
        self.model = model
        self.klass = model.__class__
        self.record = Errors(model)
        self.validators: list[Rule] = list(getattr(self.klass, "__validations__", None) or [])

    def get_record(self) -> "Errors":
        return self.record

    def rules(self) -> dict[str, list[dict[str, Any]]]:
        """Declared rules keyed by attribute: ``{"name": [{"validator": "presence", ...}]}``."""
        data: dict[str, list[dict[str, Any]]] = {}
        for rule in self.validators:
            for attribute in rule.attributes:
                key = "_and_".join(attribute) if isinstance(attribute, (list, tuple)) else attribute
                data.setdefault(key, []).append({"validator": rule.validator, **rule.options})
        return data

    def validate(self) -> "Errors":
        for rule in self.validators:
            if not rule.applies_to(self.model):
                continue

            validator = VALIDATORS.get(rule.validator)
            if validator is None:
                raise ValidationsArgumentError(f"Unknown validator: {rule.validator}")

            for attribute in rule.attributes:
                validator(self, attribute, rule.options)

        self.model.validate()
        self.record.clear_model()
        return self.record

    def value_of(self, attribute: str) -> Any:
        return getattr(self.model, attribute)

    @staticmethod
    def is_null_with_option(value, options) -> bool:
        return value is None and bool(options.get("allow_null"))

    @staticmethod
    def is_blank_with_option(value, options) -> bool:
        return is_blank(value) and bool(options.get("allow_blank"))

    def skip(self, value, options) -> bool:
        return self.is_null_with_option(value, options) or self.is_blank_with_option(value, options)


def _format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@register_validator("presence")
def presence_validator(validations: Validations, attribute: str, options: dict[str, Any]):
    validations.record.add_on_blank(attribute, options.get("message") or Errors.DEFAULT_ERROR_MESSAGES["blank"])


def _inclusion_or_exclusion(kind: str, validations: Validations, attribute: str, options: dict[str, Any]):
    value = validations.value_of(attribute)

    enum = options.get("in", options.get("within"))
    if enum is None:
        raise ValidationsArgumentError(f"validates_{kind}_of requires an [in] or [within] option")
    if not isinstance(enum, (list, tuple, set, frozenset, range)):
        enum = [enum]

    message = (options.get("message") or Errors.DEFAULT_ERROR_MESSAGES[kind]).replace("%s", str(value))

    if validations.skip(value, options):
        return

    if (kind == "inclusion" and value not in enum) or (kind == "exclusion" and value in enum):
        validations.record.add(attribute, message)


@register_validator("inclusion")
def inclusion_validator(validations, attribute, options):
    _inclusion_or_exclusion("inclusion", validations, attribute, options)


@register_validator("exclusion")
def exclusion_validator(validations, attribute, options):
    _inclusion_or_exclusion("exclusion", validations, attribute, options)


@register_validator("format")
def format_validator(validations: Validations, attribute: str, options: dict[str, Any]):
    expression = options.get("with")
    if not isinstance(expression, (str, re.Pattern)) or expression == "":
        raise ValidationsArgumentError(
            "A regular expression must be supplied as the [with] option of the configuration array."
        )

    value = validations.value_of(attribute)
    if validations.skip(value, options):
        return

    if not re.search(expression, "" if value is None else str(value)):
        validations.record.add(attribute, options.get("message") or Errors.DEFAULT_ERROR_MESSAGES["invalid"])


@register_validator("length")
def length_validator(validations: Validations, attribute: str, options: dict[str, Any]):
    range_options = sorted(key for key in ALL_RANGE_OPTIONS if key in options)

    if not range_options:
        raise ValidationsArgumentError("Range unspecified.  Specify the [within], [maximum], or [is] option.")
    if len(range_options) > 1:
        raise ValidationsArgumentError("Too many range options specified.  Choose only one.")

    value = validations.value_of(attribute)
    if validations.skip(value, options):
        return

    bounds = {range_options[0]: options[range_options[0]]}
    if range_options[0] in ("within", "in"):
        range_ = options[range_options[0]]
        if isinstance(range_, range):
            range_ = (range_.start, range_.stop - 1)
        if not isinstance(range_, (list, tuple)) or len(range_) != 2:
            raise ValidationsArgumentError(
                f"{range_options[0]} must be an array composing a range of numbers "
                "with key [0] being less than key [1]"
            )
        bounds = {"minimum": range_[0], "maximum": range_[1]}

    messages = {"is": "wrong_length", "minimum": "too_short", "maximum": "too_long"}
    length = 0 if value is None else len(str(value))

    for name, bound in bounds.items():
        if int(bound) <= 0:
            raise ValidationsArgumentError(f"{name} value cannot use a signed integer.")
        if isinstance(bound, float):
            raise ValidationsArgumentError(f"{name} value cannot use a float for length.")

        # a missing value is never too long
        if name == "maximum" and value is None:
            continue

        message = options.get("message") or options.get(messages[name]) \
            or Errors.DEFAULT_ERROR_MESSAGES[messages[name]]
        message = message.replace("%d", str(bound))

        if (name == "maximum" and length > bound) or (name == "minimum" and length < bound) \
                or (name == "is" and length != bound):
            validations.record.add(attribute, message)


_INTEGER_RE = re.compile(r"\A[+-]?\d+\Z")


def _to_number(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@register_validator("numericality")
def numericality_validator(validations: Validations, attribute: str, options: dict[str, Any]):
    value = validations.value_of(attribute)
    if validations.is_null_with_option(value, options):
        return

    not_a_number = options.get("message") or Errors.DEFAULT_ERROR_MESSAGES["not_a_number"]

    if options.get("only_integer"):
        if not (isinstance(value, int) and not isinstance(value, bool)):
            if value is None or not _INTEGER_RE.match(str(value)):
                validations.record.add(attribute, not_a_number)
                return
            value = int(value)
    else:
        number = _to_number(value)
        if number is None:
            validations.record.add(attribute, not_a_number)
            return
        value = number

    for check in ALL_NUMERICALITY_CHECKS:
        if check not in options:
            continue

        message = options.get("message") or Errors.DEFAULT_ERROR_MESSAGES[check]

        if check in ("odd", "even"):
            if not options[check]:
                continue
            if (check == "odd" and not is_odd(value)) or (check == "even" and is_odd(value)):
                validations.record.add(attribute, message)
            continue

        bound = _to_number(options[check])
        if bound is None:
            raise ValidationsArgumentError(f"{check} must be a number")
        message = message.replace("%d", _format_number(bound))

        failed = {
            "greater_than": lambda: not value > bound,
            "greater_than_or_equal_to": lambda: not value >= bound,
            "equal_to": lambda: not value == bound,
            "less_than": lambda: not value < bound,
            "less_than_or_equal_to": lambda: not value <= bound,
        }[check]()

        if failed:
            validations.record.add(attribute, message)


@register_validator("uniqueness")
def uniqueness_validator(validations: Validations, attribute, options: dict[str, Any]):
    model = validations.model
    connection = model.connection()

    if isinstance(attribute, (list, tuple)):
        error_key = "_and_".join(attribute)
        fields = list(attribute)
    else:
        error_key = attribute
        fields = [attribute]

    pk = model.get_primary_key(True)
    pk_value = getattr(model, pk)
    pk_quoted = connection.quote_name(pk)

    conditions: list[Any] = [""]
    if pk_value is None:
        sql = f"{pk_quoted} IS NOT NULL"
    else:
        sql = f"{pk_quoted} != ?"
        conditions.append(pk_value)

    for name in fields:
        name = model.get_real_attribute_name(name) or name
        sql += f" AND {connection.quote_name(name)}=?"
        conditions.append(getattr(model, name))

    conditions[0] = sql

    if model.__class__.exists(conditions=conditions):
        validations.record.add(error_key, options.get("message") or Errors.DEFAULT_ERROR_MESSAGES["unique"])


class Errors:
    """
    Attribute name to list of error messages, filled in by a validation pass.

        book.errors.on("name")          # "can't be blank"
        book.errors.full_messages()     # ["Name can't be blank"]
    """

    DEFAULT_ERROR_MESSAGES = {
        "inclusion": "is not included in the list",
        "exclusion": "is reserved",
        "invalid": "is invalid",
        "confirmation": "doesn't match confirmation",
        "accepted": "must be accepted",
        "empty": "can't be empty",
        "blank": "can't be blank",
        "too_long": "is too long (maximum is %d characters)",
        "too_short": "is too short (minimum is %d characters)",
        "wrong_length": "is the wrong length (should be %d characters)",
        "taken": "has already been taken",
        "not_a_number": "is not a number",
        "greater_than": "must be greater than %d",
        "equal_to": "must be equal to %d",
        "less_than": "must be less than %d",
        "less_than_or_equal_to": "must be less than or equal to %d",
        "greater_than_or_equal_to": "must be greater than or equal to %d",
        "odd": "must be odd",
        "even": "must be even",
        "unique": "must be unique",
    }

    def __init__(self, model=None):
        self.model = model
        self.errors: dict[str, list[str]] = {}

    def clear_model(self):
        # drop the back reference once validation is done
        self.model = None

    def add(self, attribute: str, msg: str | None = None):
        if msg is None:
            msg = self.DEFAULT_ERROR_MESSAGES["invalid"]
        self.errors.setdefault(attribute, []).append(msg)

    def add_on_empty(self, attribute: str, msg: str | None = None):
        value = getattr(self.model, attribute)
        if not value or value == "0":
            self.add(attribute, msg or self.DEFAULT_ERROR_MESSAGES["empty"])

    def add_on_blank(self, attribute: str, msg: str | None = None):
        value = getattr(self.model, attribute)
        if value is None or value == "":
            self.add(attribute, msg or self.DEFAULT_ERROR_MESSAGES["blank"])

    def is_invalid(self, attribute: str) -> bool:
        return attribute in self.errors

    def on(self, attribute: str) -> str | list[str] | None:
        errors = self.errors.get(attribute)
        if errors and len(errors) == 1:
            return errors[0]
        return errors

    def get(self, attribute: str, default=None):
        return self.errors.get(attribute, default)

    def __getitem__(self, attribute: str) -> list[str] | None:
        return self.errors.get(attribute)

    def get_raw_errors(self) -> dict[str, list[str]]:
        return self.errors

    def full_messages(self) -> list[str]:
        messages = []
        self.to_dict(lambda attribute, message: messages.append(message))
        return messages

    def to_dict(self, callback: Callable[[str, str], Any] | None = None) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        for attribute, messages in self.errors.items():
            for msg in messages:
                if msg is None:
                    continue
                message = f"{humanize(attribute)} {msg}"
                errors.setdefault(attribute, []).append(message)
                if callback:
                    callback(attribute, message)
        return errors

    def is_empty(self) -> bool:
        return not self.errors

    def clear(self):
        self.errors = {}

    def size(self) -> int:
        return sum(len(messages) for messages in self.errors.values())

    def __len__(self):
        return self.size()

    def __iter__(self):
        return iter(self.full_messages())

    def __str__(self):
        return "\n".join(self.full_messages())
