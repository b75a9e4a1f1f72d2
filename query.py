#!/usr/bin/env python3
"""Ad hoc query runner for the Flavr recipe service.

Run recipe requests or chat messages directly without an HTTP server.

Usage:
    python query.py "Gordon Ramsay's beef wellington"
    python query.py --debug "something comforting for a rainy night"  # Show full JSON response
    python query.py --stateless "carbonara"  # Don't save the recipe
    python query.py --chat "quick recipe for: shakshuka"  # Chat without a selected recipe
    python query.py --chat --recipe "Chicken Tikka Masala" "can I make it less spicy?"
    python query.py --suggest  # Three title suggestions from different cuisines

Features:
- Full pipeline execution (classify -> variety -> prompt -> generate -> persist)
- Recipe rendered as markdown, chat replies printed as-is
- Debug mode to display full JSON with all fields
- Stateless mode to run without persistence
"""

import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown

from src.models.models import GeneratedRecipe
from src.services.factory import initialize_recipe_service
from src.utils.logger import logger, set_level

console = Console()

CLI_CLIENT_ID = "cli"
CLI_USER_ID = "cli-user"


def recipe_to_markdown(recipe: GeneratedRecipe) -> str:
    """Render a generated recipe as markdown for the terminal."""
    lines = [f"# {recipe.title}"]
    if recipe.description:
        lines.append(f"_{recipe.description}_")
    meta = [f"Serves {recipe.servings}"]
    if recipe.cook_time_display():
        meta.append(recipe.cook_time_display())
    if recipe.cuisine:
        meta.append(recipe.cuisine)
    lines.append(" · ".join(meta))

    for section in recipe.ingredients:
        lines.append(f"## {section.section}")
        lines.extend(f"- {item.display()}" for item in section.items)

    lines.append("## Method")
    lines.extend(f"{idx}. {step}" for idx, step in enumerate(recipe.flat_instructions(), start=1))

    if recipe.tips():
        lines.append("## Tips")
        lines.extend(f"- {tip}" for tip in recipe.tips().split(" | "))
    return "\n\n".join(lines)


async def _run(
    query: str,
    chat: bool,
    recipe_title: Optional[str],
    suggest: bool,
    stateless: bool,
    debug: bool,
) -> None:
    service = initialize_recipe_service(use_db=not stateless)
    user_id = None if stateless else CLI_USER_ID

    if suggest:
        titles = await service.suggest_recipe_titles(CLI_CLIENT_ID, mood=query or None)
        for title in titles:
            console.print(f"• {title}")
        return

    if chat:
        payload = {"message": query, "client_id": CLI_CLIENT_ID, "user_id": user_id}
        if recipe_title:
            payload["current_recipe"] = {"title": recipe_title}
        response = await service.handle_chat_message(payload)
        body = Markdown(response.reply)
    else:
        response = await service.handle_recipe_request({
            "client_id": CLI_CLIENT_ID,
            "user_id": user_id,
            "preferences": {"user_intent": query},
        })
        if response.message:
            console.print(f"[yellow]{response.message}[/yellow]")
        body = Markdown(recipe_to_markdown(response.recipe))

    logger.info("---")
    console.print()

    if debug:
        console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print_json(response.model_dump_json())
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print()

    console.print(body)


def run_query(
    query: str,
    chat: bool = False,
    recipe_title: Optional[str] = None,
    suggest: bool = False,
    stateless: bool = False,
    debug: bool = False,
) -> None:
    """Execute a single ad hoc query and print the response."""
    if debug:
        set_level(logging.DEBUG)
    try:
        logger.info(f"Running query (chat={chat}, stateless={stateless}): {query}")
        asyncio.run(_run(query, chat, recipe_title, suggest, stateless, debug))
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)


USAGE = 'Usage: python query.py [--debug] [--stateless] [--chat [--recipe TITLE]] [--suggest] "<your query>"'


if __name__ == "__main__":
    debug_mode = False
    stateless_mode = False
    chat_mode = False
    suggest_mode = False
    recipe_title = None
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        flag = sys.argv[argv_start]
        argv_start += 1
        if flag == "--debug":
            debug_mode = True
        elif flag == "--stateless":
            stateless_mode = True
        elif flag == "--chat":
            chat_mode = True
        elif flag == "--suggest":
            suggest_mode = True
        elif flag == "--recipe":
            if argv_start >= len(sys.argv):
                print("Error: --recipe flag requires a recipe title")
                sys.exit(1)
            recipe_title = sys.argv[argv_start]
            argv_start += 1
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)

    query = " ".join(sys.argv[argv_start:])
    if not query and not suggest_mode:
        print("Error: No query provided")
        print(USAGE)
        sys.exit(1)

    run_query(
        query,
        chat=chat_mode,
        recipe_title=recipe_title,
        suggest=suggest_mode,
        stateless=stateless_mode,
        debug=debug_mode,
    )
