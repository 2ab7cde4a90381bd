from importlib import import_module

PRIMARY_KEY = "ledger"
BACKUP_KEY = "ledger.backup"


def get_backend(config, name=None):
    """Instantiate the storage backend configured under ``storage``."""
    name = name or config.get('storage', 'json')
    try:
        path = config['storage_backends'][name]
    except KeyError:
        raise ValueError(f"Unknown storage backend '{name}'") from None
    module_name, cls_name = path.rsplit('.', 1)
    mod = import_module(module_name)
    return getattr(mod, cls_name)(config)
