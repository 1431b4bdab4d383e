from testimonium_toolkit.utils.file_utils import (
    load_epoch_data,
    load_json,
    parse_int,
)
from testimonium_toolkit.utils.formatters import (
    console,
    format_hex,
    proof_to_json,
    save_json_output,
)

__all__ = [
    "load_json",
    "load_epoch_data",
    "parse_int",
    "console",
    "format_hex",
    "proof_to_json",
    "save_json_output",
]
