import asyncio, json, logging
from typing import Optional, List, Tuple
import discord
from discord import app_commands, Embed, Colour
from pingscan import config
from pingscan.errors import PingError
from pingscan.raw_ping import query_server, QueryResult
from pingscan.scanner import scan_range
from pingscan.state import ScanState, scan_states
from pingscan.utils import parse_port_range, resolve_host, format_ports, shorten

log = logging.getLogger("pingscan.bot")

with open(config.MESSAGES_JSON_PATH, "r", encoding="utf-8") as f:
    MSG = json.load(f)


def _elapsed(state: ScanState) -> str:
    return f"{state.elapsed.total_seconds():.1f}s"


async def _describe_found(ip: str, ports: List[int]) -> List[Tuple[int, Optional[QueryResult]]]:
    async def one(port: int):
        try:
            return port, await query_server(ip, port, config.PING_TIMEOUT)
        except PingError as e:
            log.debug("%s:%s answered the scan but not the full query: %s", ip, port, e)
            return port, None
    return list(await asyncio.gather(*[one(p) for p in ports]))


def setup(tree, bot):
    @tree.command(name="ping", description=MSG["ping.description"])
    @app_commands.describe(ip=MSG["ping.describe.ip"], port=MSG["ping.describe.port"])
    async def ping_cmd(inter: discord.Interaction, ip: str, port: Optional[int] = config.DEFAULT_PORT):
        await inter.response.defer()
        try:
            addr = await resolve_host(ip, port)
            result = await query_server(addr, port, config.PING_TIMEOUT)
        except (PingError, ValueError) as e:
            embed = Embed(title=f"❌ {ip}:{port}",
                          description=MSG["ping.embed.err.desc"].format(error=f"{type(e).__name__}: {e}"),
                          colour=Colour.red())
            await inter.followup.send(embed=embed)
            return
        st = result.status
        if st is None:
            embed = Embed(title=f"⚠️ {ip}:{port}",
                          description=MSG["ping.embed.schema.desc"].format(latency=result.latency_ms, error=result.schema_error),
                          colour=Colour.orange())
        else:
            embed = Embed(title=f"✅ {ip}:{port}",
                          description=MSG["ping.embed.ok.desc"].format(version=st.version.name, online=st.players.online,
                                                                       mx=st.players.max, latency=result.latency_ms),
                          colour=Colour.green())
            if st.motd:
                embed.add_field(name="MOTD", value=shorten(st.motd, 150), inline=False)
        await inter.followup.send(embed=embed)

    @tree.command(name="scan", description=MSG["scan.description"])
    @app_commands.describe(ip=MSG["scan.describe.ip"], ports=MSG["scan.describe.ports"], timeout=MSG["scan.describe.timeout"])
    async def scan_cmd(inter: discord.Interaction, ip: str,
                       ports: Optional[str] = None,
                       timeout: Optional[float] = config.SCAN_TIMEOUT):
        guild_id = inter.guild_id
        if guild_id is None:
            await inter.response.send_message(MSG["common.server_only"], ephemeral=True)
            return
        state = scan_states.setdefault(guild_id, ScanState())
        if state.running:
            await inter.response.send_message(MSG["scan.busy"], ephemeral=True)
            return
        try:
            start, end = parse_port_range(ports) if ports else (config.SCAN_FROM, config.SCAN_TO)
            if timeout is None or timeout <= 0:
                raise ValueError("timeout must be positive")
        except ValueError as e:
            await inter.response.send_message(MSG["scan.bad_args"].format(error=e), ephemeral=True)
            return
        # claim the slot before the first await so a second /scan sees it busy
        state.begin(ip, start, end)
        await inter.response.send_message(embed=Embed(
            title=MSG["scan.embed.start.title"],
            description=MSG["scan.embed.start.desc"].format(ip=ip, start=start, end=end, total=state.total),
            colour=Colour.blue()
        ))
        try:
            addr = await resolve_host(ip, start)
        except PingError as e:
            state.finish()
            await inter.followup.send(MSG["ping.embed.err.desc"].format(error=e))
            return
        state.task = asyncio.create_task(scan_range(addr, start, end, timeout, config.PING_WORKERS, state))
        try:
            await state.task
        except asyncio.CancelledError:
            if not state.cancelled:
                raise
        found = sorted(state.discovered)
        title = MSG["scan.embed.stopped.title" if state.cancelled else "scan.embed.finish.title"].format(ip=ip)
        embed = Embed(title=title,
                      description=MSG["scan.embed.finish.desc"].format(count=len(found), elapsed=_elapsed(state)),
                      colour=Colour.orange() if state.cancelled else Colour.green())
        shown = found[:config.RESULTS_SHOW_LIMIT]
        for port, result in await _describe_found(addr, shown):
            if result is not None and result.status is not None:
                st = result.status
                value = MSG["scan.embed.finish.field_value"].format(version=st.version.name, online=st.players.online,
                                                                     mx=st.players.max, motd=shorten(st.motd, 80))
            else:
                value = MSG["scan.embed.finish.field_unreadable"]
            embed.add_field(name=f"{ip}:{port}", value=value, inline=False)
        if len(found) > len(shown):
            embed.set_footer(text=MSG["scan.embed.finish.footer"].format(shown=len(shown), total=len(found),
                                                                         ports=shorten(format_ports(found), 1800)))
        await inter.followup.send(embed=embed)

    @tree.command(name="scan_status", description=MSG["scan_status.description"])
    async def scan_status_cmd(inter: discord.Interaction):
        state = scan_states.get(inter.guild_id)
        if state is None or state.start_time is None:
            await inter.response.send_message(MSG["scan_status.none"], ephemeral=True)
            return
        embed = Embed(title=MSG["scan_status.embed.title"].format(ip=state.address),
                      description=MSG["scan_status.embed.desc"].format(
                          checked=state.checked, total=state.total, percent=state.progress * 100,
                          found=len(state.discovered), elapsed=_elapsed(state),
                          ports=shorten(format_ports(state.discovered), 1500)),
                      colour=Colour.blurple())
        await inter.response.send_message(embed=embed)

    @tree.command(name="scan_stop", description=MSG["scan_stop.description"])
    async def scan_stop_cmd(inter: discord.Interaction):
        state = scan_states.get(inter.guild_id)
        if state is None or not state.cancel():
            await inter.response.send_message(MSG["scan_stop.none"], ephemeral=True)
            return
        await inter.response.send_message(MSG["scan_stop.ok"].format(ports=format_ports(state.discovered)))
