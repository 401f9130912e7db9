# ##############################################################################
# MODULE: EMBEDS
# DESCRIPTION: Tạo Embed thống nhất cho mọi phản hồi của bot.
#              Title = lệnh đã gọi, màu cam cho phản hồi thường, đỏ cho lỗi.
# ##############################################################################

from __future__ import annotations

from typing import Iterable

import discord

from nina.utils.constants import MAX_EMBED_DESCRIPTION


# ------------------------------------------------------------------------------
# Class: EmbedStyle
# Purpose: Thông tin author hiển thị trên mọi embed (tên + avatar của bot).
# ------------------------------------------------------------------------------
class EmbedStyle:
    def __init__(self, author_name: str, icon_url: str | None = None) -> None:
        self.author_name = author_name
        self.icon_url = icon_url

    # --------------------------------------------------------------------------
    # Method: build
    # Purpose: Tạo embed với title/description/fields; error=True dùng màu đỏ.
    # --------------------------------------------------------------------------
    def build(
        self,
        title: str,
        description: str | None = None,
        *,
        error: bool = False,
        fields: Iterable[tuple[str, str]] = (),
    ) -> discord.Embed:
        color = discord.Color.red() if error else discord.Color.orange()
        embed = discord.Embed(title=title, color=color, timestamp=discord.utils.utcnow())

        if description:
            embed.description = truncate(description, MAX_EMBED_DESCRIPTION)

        embed.set_author(name=self.author_name, icon_url=self.icon_url)

        for name, value in fields:
            embed.add_field(name=name, value=value, inline=False)

        return embed


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"


def numbered(titles: Iterable[str], *, start: int = 1) -> str:
    return "\n".join(f"{i}. {title}" for i, title in enumerate(titles, start=start))
