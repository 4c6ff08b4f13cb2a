import logging
from discord.ext import commands
from discord import Intents, Activity, ActivityType
import bot_commands
from pingscan import config

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
log = logging.getLogger("pingscan.bot")

INTENTS = Intents.default()

bot = commands.Bot(command_prefix="!", intents=INTENTS)
tree = bot.tree

bot_commands.setup(tree, bot)


@bot.event
async def on_ready():
    await tree.sync()
    log.info("Logged in as %s (id=%s)", bot.user, bot.user.id)
    await bot.change_presence(activity=Activity(type=ActivityType.watching, name=bot_commands.MSG["common.presence"]))

if __name__ == "__main__":
    if not config.DISCORD_TOKEN:
        raise SystemExit("DISCORD_TOKEN is not set")
    bot.run(config.DISCORD_TOKEN, log_handler=None)
