import os

import aiohttp
import discord
from dotenv import load_dotenv

from news_brief import BriefConfig, BriefPipeline, GammaClient, NewsBriefError, NoHeadlinesError

# Load settings (API keys, overrides) from the .env file.
load_dotenv()

# Store the bot token in .env as DISCORD_BOT_TOKEN="YOUR_BOT_TOKEN".
TOKEN = os.getenv("DISCORD_BOT_TOKEN")

if not TOKEN:
    raise ValueError("DISCORD_BOT_TOKEN is not set. Check your .env file.")

CONFIG = BriefConfig.from_env()

intents = discord.Intents.default()
intents.message_content = True  # needed to read commands

client = discord.Client(intents=intents)


async def build_and_publish(keyword):
    """Build a brief for `keyword`, submit it and wait for the rendered page."""
    async with BriefPipeline.open(CONFIG) as pipeline:
        result = await pipeline.build(keyword)
    async with aiohttp.ClientSession() as session:
        gamma = GammaClient.from_config(session, CONFIG)
        generation_id = await gamma.create(result.input_text, result.keyword)
        status = await gamma.poll(generation_id)
        hero_image = await gamma.fetch_og_image(status.gamma_url)
    return result, status, hero_image


@client.event
async def on_ready():
    print(f'Logged in as {client.user}')


@client.event
async def on_message(message):
    # Ignore the bot's own messages.
    if message.author == client.user:
        return

    # Usage: !brief [keyword]
    if not message.content.startswith('!brief'):
        return

    keyword = message.content[len('!brief'):].strip() or None
    await message.channel.send("Building the brief... this can take a few minutes.")

    try:
        result, status, hero_image = await build_and_publish(keyword)
    except NoHeadlinesError:
        await message.channel.send("No headlines found. Try another keyword.")
        return
    except NewsBriefError as e:
        print(f"Brief error: {e}")
        await message.channel.send("Something went wrong while building the brief.")
        return

    response = f"📰 **Daily brief: {result.keyword}**\n"
    response += f"{len(result.headlines)} headlines, {result.enriched_count} with verified facts\n"
    response += f"<{status.gamma_url}>\n"
    if status.pdf_url:
        response += f"PDF: <{status.pdf_url}>\n"
    if hero_image:
        response += f"Cover: {hero_image}\n"

    # Keep messages under Discord's 2000 character limit.
    if len(response) > 2000:
        response = response[:1997] + "..."

    await message.channel.send(response)

client.run(TOKEN)
