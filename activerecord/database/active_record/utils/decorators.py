def callback(hook_name: str, prepend: bool = False):
    """
    Register the decorated model method under a lifecycle hook.

        class Venue(Model):
            @callback("before_save")
            def normalize_name(self):
                self.name = self.name.strip()
    """
    def decorator(fn):
        fn.__callback_name__ = hook_name
        fn.__callback_prepend__ = prepend
        return fn
    return decorator
