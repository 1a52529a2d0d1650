"""
Connection parameters from the environment and from config files.

The config file is a JSON (or, with pyyaml installed, YAML) document
with one object per section:

    {
        "default": {"url": "https://cloud.example.com/", "username": "alice"},
        "work": {"inherits": "default", "url": "https://cloud.example.org/"}
    }

Keys of a section are the keyword arguments of ServerContext.
"""

import json
import logging
import os
from typing import Any
from typing import Dict
from typing import Optional

from davjobs.context import ServerContext

log = logging.getLogger("davjobs")

## Keys of a config section that are no connection parameters
_META_KEYS = ("inherits", "disable")


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn, interactive_error=False):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/davjobs/davjobs.conf",
            f"{cfgdir}/davjobs/davjobs.yaml",
            f"{cfgdir}/davjobs/davjobs.json",
            "/etc/davjobs/davjobs.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## yaml is an external module and not in the requirements
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    log.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                log.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        log.info("no config file found")
    except ValueError:
        if interactive_error:
            log.error(
                "error in config file.  Be aware that the interactive configuration will ignore and overwrite the current broken config file",
                exc_info=True,
            )
        else:
            log.error("error in config file.  It will be ignored", exc_info=True)
    return {}


def get_connection_params(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section_name: Optional[str] = None,
    environment: bool = True,
    **config_data: Any,
) -> Optional[Dict[str, Any]]:
    """
    Collect the keyword arguments for a ServerContext.  The first
    source that yields a url wins:

    1. Explicit parameters (url=, username=, password=, ...)
    2. Environment variables (DAVJOBS_URL, DAVJOBS_USERNAME, DAVJOBS_PASSWORD)
    3. Config file (DAVJOBS_CONFIG_FILE env var or ~/.config/davjobs/)

    Returns:
        The parameters, or None if no url was found anywhere.
    """
    if config_data.get("url"):
        return config_data

    if environment:
        conn_params: Dict[str, Any] = {}
        for key in ("url", "username", "password", "auth_type", "dav_path"):
            value = os.environ.get(f"DAVJOBS_{key.upper()}")
            if value:
                conn_params[key] = value
        if conn_params.get("url"):
            return {**conn_params, **config_data}
        if not config_file:
            config_file = os.environ.get("DAVJOBS_CONFIG_FILE")
        if not config_section_name:
            config_section_name = os.environ.get("DAVJOBS_CONFIG_SECTION")

    if check_config_file:
        cfg = read_config(config_file)
        if cfg:
            section = config_section(cfg, config_section_name or "default")
            if section.get("disable", False):
                return None
            conn_params = {k: v for k, v in section.items() if k not in _META_KEYS}
            if conn_params.get("url"):
                return {**conn_params, **config_data}

    return None


def get_context(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data: Any,
) -> Optional[ServerContext]:
    """
    Create a ServerContext from explicit parameters, the environment or
    a config file, see get_connection_params().

    Example::

        from davjobs.config import get_context
        async with get_context() as context:
            props = await PropfindJob(context, "Documents", ["getetag"]).run()

    Returns:
        ServerContext instance, or None if no configuration is found.
    """
    conn_params = get_connection_params(
        check_config_file=check_config_file,
        config_file=config_file,
        config_section_name=config_section,
        environment=environment,
        **config_data,
    )
    if conn_params is None:
        return None
    return ServerContext(**conn_params)
