# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

import yaml

from bindcheck.error import BindingError

try:
    # Use the C LibYAML parser if available, rather than the Python parser.
    # This makes loading large binding directories a lot faster.
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader  # type: ignore


# Custom PyYAML binding loader class to avoid modifying yaml.SafeLoader
# directly, which could interfere with YAML loading in clients
class _BindingLoader(SafeLoader):
    pass


def _load_yaml(source, path: str):
    # Parses 'source' (a string or an open file) with _BindingLoader. 'path' is
    # only used for error messages and must be given by the caller so that
    # YAML errors always point at the offending binding.
    try:
        return yaml.load(source, Loader=_BindingLoader)
    except yaml.YAMLError as e:
        raise BindingError(f"'{path}' isn't valid YAML: {e}") from e
