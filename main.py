#!/usr/bin/env python3
"""
Trivia Challenge Bot - Main Entry Point

This script runs the Discord trivia bot. Configure your bot token in config.json
or set the DISCORD_BOT_TOKEN environment variable.

Usage:
    python main.py           Start the bot
    python main.py --check   Check config.json and the question files, then exit

Configuration:
    1. Set your Discord bot token in config.json
    2. Or set DISCORD_BOT_TOKEN environment variable
    3. Customize game settings in the "game" section of config.json

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path


def load_config():
    """Load configuration from config.json file."""
    config_path = Path("config.json")

    if not config_path.exists():
        print("❌ Error: config.json not found!")
        print("Please create config.json and configure your Discord bot token.")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in config.json: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading config.json: {e}")
        sys.exit(1)


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    # Environment variable takes precedence
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


def setup_logging_from_config(config):
    """Set up console, file and error-file logging from the logging section."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))

    log_directory.mkdir(exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    error_handler = logging.FileHandler(log_directory / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


def check_game_data(config):
    """
    Check the game section and question files before connecting to Discord.

    Returns:
        Tuple of (problems, warnings). Problems are values the bot will
        replace with defaults or data it cannot serve; warnings are worth
        knowing but do not stop a game.
    """
    from trivia_challenge.config_manager import ConfigManager
    from trivia_challenge.question_bank import QuestionBank, ALL_CATEGORIES

    config_manager = ConfigManager()
    problems = list(config_manager.apply_config(config))
    problems.extend(config_manager.validate_settings()['issues'])
    settings = config_manager.get_game_settings()

    bank = QuestionBank(question_directory=settings.question_directory)
    bank.load_question_files()
    summary = bank.get_loading_summary()
    warnings = list(summary['errors'])

    if summary['sample_bank_active']:
        problems.append(f"No usable question files in {summary['question_directory']}; "
                        f"the built-in sample questions will be used")

    if settings.category != ALL_CATEGORIES and settings.category not in summary['categories']:
        problems.append(f"Default category '{settings.category}' has no questions")
    else:
        available = bank.filtered_count(settings.category)
        if available < settings.question_count:
            warnings.append(f"Only {available} questions in '{settings.category}', "
                            f"games will be shorter than {settings.question_count}")
        if settings.time_attack and available < 2 * settings.question_count:
            warnings.append(f"Team time attack needs {2 * settings.question_count} questions "
                            f"in '{settings.category}' for two full rounds, found {available}")

    print(f"📚 {summary['total_questions']} questions in "
          f"{len(summary['categories']) - 1} categories from {summary['question_directory']}")
    print(config_manager.get_settings_summary())
    for warning in warnings:
        print(f"⚠️ {warning}")
    for problem in problems:
        print(f"❌ {problem}")
    return problems, warnings


async def run_bot_with_config():
    """Run the bot with configuration."""
    config = load_config()
    setup_logging_from_config(config)
    check_game_data(config)
    token = get_bot_token(config)

    from trivia_challenge.bot import run_bot
    await run_bot(token, config)


if __name__ == "__main__":
    if "--check" in sys.argv[1:]:
        problems, _ = check_game_data(load_config())
        print("✅ Game data looks good" if not problems else f"❌ {len(problems)} problem(s) found")
        sys.exit(1 if problems else 0)

    try:
        print("🤖 Starting Trivia Challenge bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
