"""Config flow for Training Sync.

The user id is the identity provider's opaque id. Leaving it empty keeps the
entry signed out: local data still works, every sync entry point is skipped.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .const import (
    CONF_API_KEY,
    CONF_NAME,
    CONF_REMOTE_URL,
    CONF_USER_ID,
    DEFAULT_NAME,
    DEFAULT_REMOTE_URL,
    DOMAIN,
)


def _clean(user_input: dict[str, Any]) -> dict[str, str]:
    return {
        CONF_REMOTE_URL: str(user_input.get(CONF_REMOTE_URL) or "").strip().rstrip("/"),
        CONF_API_KEY: str(user_input.get(CONF_API_KEY) or "").strip(),
        CONF_USER_ID: str(user_input.get(CONF_USER_ID) or "").strip(),
    }


def _validate(data: dict[str, str]) -> dict[str, str]:
    errors: dict[str, str] = {}
    remote_url = data[CONF_REMOTE_URL]
    if data[CONF_USER_ID] and not remote_url:
        errors[CONF_REMOTE_URL] = "remote_required"
    elif remote_url and not remote_url.startswith(("http://", "https://")):
        errors[CONF_REMOTE_URL] = "invalid_url"
    return errors


class TrainingSyncConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Training Sync."""

    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        errors: dict[str, str] = {}
        if user_input is not None:
            name = str(user_input.get(CONF_NAME, DEFAULT_NAME)).strip() or DEFAULT_NAME
            data = _clean(user_input)
            errors = _validate(data)
            if not errors:
                await self.async_set_unique_id(name.lower())
                self._abort_if_unique_id_configured()
                return self.async_create_entry(title=name, data={CONF_NAME: name, **data})

        schema = vol.Schema(
            {
                vol.Required(CONF_NAME, default=DEFAULT_NAME): str,
                vol.Optional(CONF_REMOTE_URL, default=DEFAULT_REMOTE_URL): str,
                vol.Optional(CONF_API_KEY, default=""): str,
                vol.Optional(CONF_USER_ID, default=""): str,
            }
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return TrainingSyncOptionsFlow()


class TrainingSyncOptionsFlow(config_entries.OptionsFlow):
    """Sign in/out and change the remote store. Saving reloads the entry."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        errors: dict[str, str] = {}
        if user_input is not None:
            data = _clean(user_input)
            errors = _validate(data)
            if not errors:
                return self.async_create_entry(title="", data=data)

        def _current(key: str) -> str:
            return str(self.config_entry.options.get(key, self.config_entry.data.get(key, "")) or "")

        schema = vol.Schema(
            {
                vol.Optional(CONF_REMOTE_URL, default=_current(CONF_REMOTE_URL)): str,
                vol.Optional(CONF_API_KEY, default=_current(CONF_API_KEY)): str,
                vol.Optional(CONF_USER_ID, default=_current(CONF_USER_ID)): str,
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema, errors=errors)
