from typing import Any, Callable

from activerecord.database.Exceptions import ActiveRecordException
from activerecord.database.active_record.utils.Utils import wrap_in_list

VALID_CALLBACKS = (
    "after_construct",
    "before_save",
    "after_save",
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "before_validation",
    "after_validation",
    "before_validation_on_create",
    "after_validation_on_create",
    "before_validation_on_update",
    "after_validation_on_update",
    "before_destroy",
    "after_destroy",
)

# create/update hooks run the matching save hooks first
SAVE_HOOKS = {
    "before_create": "before_save",
    "before_update": "before_save",
    "after_create": "after_save",
    "after_update": "after_save",
}


class CallBack:
    """
    Ordered lifecycle hooks for one model class.

    Hooks come from three places, in this order:
        1. ``__callbacks__ = {"before_save": ["method_name", some_callable]}``
        2. a method named exactly like a hook (``def before_save(self)``), when 1 is absent
        3. methods decorated with ``@callback("before_save")``

    A ``before_*`` hook returning ``False`` stops the chain and ``invoke`` returns False.
    """

    def __init__(self, model_class: type):
        self.klass = model_class
        self.registry: dict[str, list[str | Callable]] = {}

        definitions = getattr(model_class, "__callbacks__", None) or {}
        decorated = self._decorated_methods()

        for name in VALID_CALLBACKS:
            definition = definitions.get(name)
            if definition:
                for method in wrap_in_list(definition):
                    self.register(name, method)
            elif name not in decorated and callable(getattr(model_class, name, None)):
                self.register(name, name)

        for method_name, (hook_name, prepend) in decorated.items():
            self.register(hook_name, method_name, prepend=prepend)

    def _decorated_methods(self) -> dict[str, tuple[str, bool]]:
        found = {}
        for klass in reversed(self.klass.__mro__):
            for attr_name, value in vars(klass).items():
                if hasattr(value, "__callback_name__"):
                    found[attr_name] = (value.__callback_name__, value.__callback_prepend__)
        return found

    def get_callbacks(self, name: str) -> list[str | Callable] | None:
        return self.registry.get(name)

    def invoke(self, model, name: str, must_exist: bool = True) -> bool:
        if must_exist and name not in self.registry:
            raise ActiveRecordException(f"No callbacks were defined for: {name} on {model.__class__.__name__}")

        registry = list(self.registry.get(name, []))

        save_hook = SAVE_HOOKS.get(name)
        if save_hook:
            registry = list(self.registry.get(save_hook, [])) + registry

        for method in registry:
            ret = method(model) if callable(method) else getattr(model, method)()

            if ret is False and name.startswith("before"):
                return False
        return True

    def register(self, name: str, closure_or_method_name: str | Callable | None = None,
                 prepend: bool = False) -> None:
        if not closure_or_method_name:
            closure_or_method_name = name

        if name not in VALID_CALLBACKS:
            raise ActiveRecordException(f"Invalid callback: {name}")

        if not callable(closure_or_method_name):
            self._verify_method(name, closure_or_method_name)

        hooks = self.registry.setdefault(name, [])
        if prepend:
            hooks.insert(0, closure_or_method_name)
        else:
            hooks.append(closure_or_method_name)

    def _verify_method(self, name: str, method_name: Any) -> None:
        method = getattr(self.klass, method_name, None) if isinstance(method_name, str) else None

        if not callable(method):
            raise ActiveRecordException(f"Unknown method for callback: {name}: #{method_name}")

        if method_name.startswith("_"):
            raise ActiveRecordException(
                "Callback methods need to be public (or anonymous closures). "
                f"Please change the visibility of {self.klass.__name__}->{method_name}()"
            )
