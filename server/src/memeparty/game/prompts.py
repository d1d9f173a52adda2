"""Situation prompts and default player identities."""

import random

from memeparty.game.models import Prompt, Theme

CELEBRITY_NAMES: list[str] = [
    "Taylor Swift",
    "Beyoncé",
    "Elon Musk",
    "Oprah Winfrey",
    "Ryan Reynolds",
    "Zendaya",
    "Pedro Pascal",
    "Rihanna",
    "Harry Styles",
    "Doja Cat",
    "Lil Nas X",
    "Ariana Grande",
    "Lady Gaga",
    "Dua Lipa",
    "Simu Liu",
    "Keanu Reeves",
    "Greta Gerwig",
    "Kenan Thompson",
    "John Oliver",
    "Jennifer Lopez",
]

EMOJI_AVATARS: list[str] = [
    "😎", "🤖", "🎉", "🔥", "🍕", "🌈", "🦄", "🚀", "🎮", "💥",
    "🐸", "🧠", "🥳", "🍩", "🍔", "🐙", "🐼", "🦊", "🛸", "👾",
]

_SITUATIONS: dict[Theme, list[str]] = {
    Theme.FUN: [
        "Your group chat suddenly revives at 2AM.",
        "Someone brings out a karaoke mic at the party.",
        "You open the fridge and see mystery leftovers.",
        "It is Monday morning and your alarm just betrayed you.",
        "A raccoon is staring at you from the trash can.",
        "Your favorite show just got cancelled again.",
        'Your friend says "trust me" before doing a backflip.',
    ],
    Theme.UNIVERSITY: [
        "The professor says \"this won't be on the exam\".",
        "It is finals week and the library is full.",
        "Group project due tomorrow and no one replied.",
        "Campus wifi goes down during an online test.",
        "You accidentally walk into the wrong lecture hall.",
        "The only printer on campus jams again.",
        "You see your TA at the grocery store.",
    ],
    Theme.MATURE: [
        'Your situationship texts "we need to talk".',
        "The bartender remembers your order a little too well.",
        "Your ex suddenly watches your stories again.",
        "You read the receipt after a wild night out.",
        "The group chat dares you to send a risky text.",
        "You meet the in-laws after bottomless brunch.",
    ],
}

NEW_SPIN_SUFFIX = " (new spin)"


def prompts_for_theme(theme: Theme) -> list[Prompt]:
    """Return the base prompt pool for a theme."""
    return [
        Prompt(id=f"{theme.value}-{index}", text=text, theme=theme)
        for index, text in enumerate(_SITUATIONS[theme])
    ]


def new_spin_prompts(theme: Theme, generation: int) -> list[Prompt]:
    """Return a regenerated pool with fresh ids for an exhausted theme.

    Args:
        theme: Theme to regenerate
        generation: How many times the pool has been regenerated so far,
            keeps ids unique across regenerations

    Returns:
        Variants of the base prompts
    """
    return [
        Prompt(
            id=f"{prompt.id}-repeat-{generation}",
            text=f"{prompt.text}{NEW_SPIN_SUFFIX}",
            theme=theme,
        )
        for prompt in prompts_for_theme(theme)
    ]


def random_name(rng: random.Random | None = None) -> str:
    return (rng or random).choice(CELEBRITY_NAMES)


def random_avatar(rng: random.Random | None = None) -> str:
    return (rng or random).choice(EMOJI_AVATARS)
