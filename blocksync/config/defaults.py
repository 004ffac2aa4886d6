# BlockSync Default Configuration
# Full default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "naming": {
        "prefix": "AT_",
        "extension": ".docx",
        "root_category": "InternalAutotext",
        "category_separator": "\\",
        "space_replacement": "_",
    },
    "scan": {
        "max_depth": 5,
    },
    "paths": {
        "source_directory": None,
        "store_path": None,
        "export_directory": None,
        "state_dir": "~/.config/blocksync",
    },
    "import": {
        "only_changed": True,
        "confirm_new": True,
        "flat": False,
        "flat_category": "InternalAutotext",
    },
    "export": {
        "flat": False,
    },
    "backup": {
        "keep_count": 5,
        "directory": None,
    },
    "output": {
        "verbose": False,
        "colored": True,
        "enable_logging": True,
        "log_dir": "~/.config/blocksync/logs",
        "log_retention_days": 30,
    },
}


def get_default_config() -> dict[str, Any]:
    """Return a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def generate_default_config() -> str:
    """Generate default configuration as YAML string with comments."""
    header = """# BlockSync Configuration
#
# Synchronizes entry source files (<prefix><name><extension>) in a directory
# tree with the entries of a document store.
#
# naming:  file naming convention and category derivation
#            AT_Foo.docx            -> Foo (InternalAutotext)
#            Legal/AT_My Clause.docx -> My_Clause (InternalAutotext\\Legal)
# paths:   default source directory, store file and export directory;
#          state_dir holds ledger.txt and manifest.txt
# import:  only_changed imports new and modified files only;
#          confirm_new asks before creating entries for new files
# backup:  a snapshot of the store is taken before every mutating batch

"""
    return header + yaml.dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False, allow_unicode=True)
