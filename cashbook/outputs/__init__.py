import logging
from importlib import import_module

from cashbook.outputs.text_output import TextOutput

logger = logging.getLogger(__name__)

FALLBACK_OUTPUT = 'text'


def get_output(name, config):
    try:
        path = config['output_modules'][name]
    except KeyError:
        raise ValueError(f"Unknown output format '{name}'") from None
    module_name, cls_name = path.rsplit('.', 1)
    mod = import_module(module_name)
    return getattr(mod, cls_name)(config)


def export_report(report, config, output_format='excel'):
    """Write ``report`` with the requested output.

    If that output fails for any reason the same sheets are written as
    tab-delimited text instead. Returns the path of the written file.
    """
    try:
        return get_output(output_format, config).write(report)
    except Exception:
        if output_format == FALLBACK_OUTPUT:
            raise
        logger.exception(
            "Could not write %s as %s, falling back to plain text",
            report.filename, output_format,
        )
    return TextOutput(config).write(report)
