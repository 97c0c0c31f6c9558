"""Maps named actions onto manager operations and normalises their results.

Any authenticated identity may drive the server lifecycle, mods, logs and
backups. Whitelist mutations are owner-only, and so is ``server.settings``:
it rewrites the JVM arguments and bind port the next launch will use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .dispatch_helpers import (
    BackupCreateParams,
    BackupIdParams,
    CommandParams,
    LogReadParams,
    ModFileParams,
    StopParams,
    UploadChunkParams,
    UploadIdParams,
    UploadStartParams,
    WhitelistEnabledParams,
    WhitelistUuidParams,
    WhitelistValueParams,
    settings_update_from_payload,
)
from .exceptions import AuthorizationError, ManagerError, NotFoundError, PermissionDeniedError, ValidationError
from .manager import HytaleManager

logger = logging.getLogger(__name__)

OWNER_ROLE = "owner"
MEMBER_ROLE = "member"

CommandResult = Dict[str, Any]
Handler = Callable[[Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = MEMBER_ROLE

    @property
    def is_owner(self) -> bool:
        return self.role == OWNER_ROLE


OWNER_ONLY_ACTIONS = frozenset({"server.settings", "whitelist.setEnabled", "whitelist.add", "whitelist.remove"})

OK_DATA = {"ok": True}


class CommandDispatcher:
    """Runs one action per call and returns ``{ok, data}`` or ``{ok: False, status, error}``."""

    def __init__(self, manager: HytaleManager) -> None:
        self._manager = manager
        self._handlers: Dict[str, Handler] = {
            "server.snapshot": self._snapshot,
            "server.install": self._install,
            "java.install": self._install_java,
            "server.start": self._start,
            "server.stop": self._stop,
            "server.restart": self._restart,
            "server.command": self._command,
            "server.settings": self._settings,
            "mods.list": self._list_mods,
            "mods.enable": self._enable_mod,
            "mods.disable": self._disable_mod,
            "mods.delete": self._delete_mod,
            "mod.upload.start": self._upload_start,
            "mod.upload.chunk": self._upload_chunk,
            "mod.upload.finish": self._upload_finish,
            "mod.upload.cancel": self._upload_cancel,
            "logs.list": self._list_logs,
            "logs.read": self._read_log,
            "backups.list": self._list_backups,
            "backup.create": self._create_backup,
            "backup.delete": self._delete_backup,
            "backup.restore": self._restore_backup,
            "whitelist.list": self._list_whitelist,
            "whitelist.setEnabled": self._set_whitelist_enabled,
            "whitelist.add": self._add_whitelist_entry,
            "whitelist.remove": self._remove_whitelist_entry,
        }

    @property
    def actions(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(
        self, identity: Optional[Identity], action: Optional[str], payload: Optional[Mapping[str, Any]] = None
    ) -> CommandResult:
        try:
            data = await self._run(identity, action, payload or {})
        except ManagerError as exc:
            return {"ok": False, "status": exc.status, "error": exc.message}
        except Exception:
            logger.exception("Command failure: %s", action)
            return {"ok": False, "status": 500, "error": "Unexpected command error"}
        return {"ok": True, "data": data}

    async def _run(self, identity: Optional[Identity], action: Optional[str], payload: Mapping[str, Any]) -> Any:
        if identity is None:
            raise AuthorizationError("Authentication required.")
        if not action:
            raise ValidationError("Command action is required.")
        handler = self._handlers.get(action)
        if handler is None:
            raise NotFoundError(f"Unknown command: {action}")
        if action in OWNER_ONLY_ACTIONS and not identity.is_owner:
            raise PermissionDeniedError("Owner permissions are required for this action.")
        return await handler(payload)

    async def _snapshot(self, payload: Mapping[str, Any]) -> Any:
        return await self._manager.snapshot()

    async def _install(self, payload: Mapping[str, Any]) -> Any:
        return (await self._manager.install()).to_dict()

    async def _install_java(self, payload: Mapping[str, Any]) -> Any:
        return (await self._manager.install_managed_java_runtime()).to_dict()

    async def _start(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.start()
        return OK_DATA

    async def _stop(self, payload: Mapping[str, Any]) -> Any:
        params = StopParams.from_payload(payload)
        await self._manager.stop(params.force)
        return OK_DATA

    async def _restart(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.restart()
        return OK_DATA

    async def _command(self, payload: Mapping[str, Any]) -> Any:
        self._manager.send_command(CommandParams.from_payload(payload).value)
        return OK_DATA

    async def _settings(self, payload: Mapping[str, Any]) -> Any:
        return await self._manager.update_server_runtime_settings(settings_update_from_payload(payload))

    async def _mods_payload(self) -> List[Dict[str, Any]]:
        return [mod.to_dict() for mod in await self._manager.list_mods()]

    async def _list_mods(self, payload: Mapping[str, Any]) -> Any:
        return await self._mods_payload()

    async def _enable_mod(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.enable_mod(ModFileParams.from_payload(payload).filename)
        return await self._mods_payload()

    async def _disable_mod(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.disable_mod(ModFileParams.from_payload(payload).filename)
        return await self._mods_payload()

    async def _delete_mod(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.delete_mod(ModFileParams.from_payload(payload).filename)
        return await self._mods_payload()

    async def _upload_start(self, payload: Mapping[str, Any]) -> Any:
        params = UploadStartParams.from_payload(payload)
        upload_id = await self._manager.start_mod_upload(params.filename, params.size)
        return {"uploadId": upload_id}

    async def _upload_chunk(self, payload: Mapping[str, Any]) -> Any:
        params = UploadChunkParams.from_payload(payload)
        return await self._manager.append_mod_upload(params.upload_id, params.chunk)

    async def _upload_finish(self, payload: Mapping[str, Any]) -> Any:
        mod = await self._manager.finish_mod_upload(UploadIdParams.from_payload(payload).upload_id)
        return {"mod": mod.to_dict(), "mods": await self._mods_payload()}

    async def _upload_cancel(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.cancel_mod_upload(UploadIdParams.from_payload(payload).upload_id)
        return OK_DATA

    async def _list_logs(self, payload: Mapping[str, Any]) -> Any:
        return [entry.to_dict() for entry in await self._manager.list_log_files()]

    async def _read_log(self, payload: Mapping[str, Any]) -> Any:
        params = LogReadParams.from_payload(payload)
        return {"name": params.name, "content": await self._manager.read_log_file(params.name, params.tail)}

    async def _backups_payload(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in await self._manager.list_backups()]

    async def _list_backups(self, payload: Mapping[str, Any]) -> Any:
        return await self._backups_payload()

    async def _create_backup(self, payload: Mapping[str, Any]) -> Any:
        backup = await self._manager.create_backup(BackupCreateParams.from_payload(payload).note)
        return {"backup": backup.to_dict(), "backups": await self._backups_payload()}

    async def _delete_backup(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.delete_backup(BackupIdParams.from_payload(payload).backup_id)
        return await self._backups_payload()

    async def _restore_backup(self, payload: Mapping[str, Any]) -> Any:
        await self._manager.restore_backup(BackupIdParams.from_payload(payload).backup_id)
        return OK_DATA

    async def _list_whitelist(self, payload: Mapping[str, Any]) -> Any:
        return (await self._manager.list_whitelist()).to_dict()

    async def _set_whitelist_enabled(self, payload: Mapping[str, Any]) -> Any:
        enabled = WhitelistEnabledParams.from_payload(payload).enabled
        return (await self._manager.set_whitelist_enabled(enabled)).to_dict()

    async def _add_whitelist_entry(self, payload: Mapping[str, Any]) -> Any:
        return (await self._manager.add_whitelist_entry(WhitelistValueParams.from_payload(payload).value)).to_dict()

    async def _remove_whitelist_entry(self, payload: Mapping[str, Any]) -> Any:
        return (await self._manager.remove_whitelist_entry(WhitelistUuidParams.from_payload(payload).uuid)).to_dict()


__all__ = ["CommandDispatcher", "Identity", "MEMBER_ROLE", "OWNER_ONLY_ACTIONS", "OWNER_ROLE"]
