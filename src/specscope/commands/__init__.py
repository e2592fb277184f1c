"""Built-in ``specscope`` sub-commands."""
