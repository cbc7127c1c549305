# minestat.py - A Minecraft server status checker
# Copyright (C) 2016-2023 Lloyd Dilley, Felix Ern (MindSolve)
# http://www.dilley.me/
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along
# with this program; if not, write to the Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA.
#
# Derived from MineStat, reworked into mcprobe.

import re
from typing import Any

import ujson


def pretty_description(raw: Any) -> str:
    """
    Render a server description as 2-space indented JSON with sorted keys.

    A plain string description becomes a quoted JSON string, so the output has
    the same shape whatever the server sent.
    """
    return ujson.dumps(
        raw,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        escape_forward_slashes=False,
    )


def strip_formatting(raw_motd: str | dict | list) -> str:
    """
    Function for stripping all formatting codes from a motd.
    Supports Json Chat components (as dict) and the legacy formatting codes.

    :param raw_motd: The raw MOTD, either as str or dict
    """
    stripped_motd = ""

    if isinstance(raw_motd, str):
        stripped_motd = re.sub(r"§.", "", raw_motd)

    elif isinstance(raw_motd, list):
        for sub in raw_motd:
            stripped_motd += strip_formatting(sub)

    elif isinstance(raw_motd, dict):
        stripped_motd = strip_formatting(raw_motd.get("text", ""))

        if raw_motd.get("extra"):
            for sub in raw_motd["extra"]:
                stripped_motd += strip_formatting(sub)

    return stripped_motd
