"""
tacboard - Constants

Game rules, lookup tables and model coefficients shared by the analytics engine.
Values follow CS2 competitive (MR12, single side swap at round 13).
"""

from enum import StrEnum

import numpy as np

# Demo tick rate (CS2 GOTV records at 64 ticks/second)
CS2_TICK_RATE = 64

# Trade Kill: avenging kill must land within this window of the teammate's death
TRADE_WINDOW_SECONDS = 4.0
TRADE_WINDOW_TICKS = int(TRADE_WINDOW_SECONDS * CS2_TICK_RATE)  # 256

# How many recent deaths the trade detector keeps per round
RECENT_DEATHS_HISTORY = 10

# A freeze-end seen this long before match start is still replayed into round 1
FREEZE_RECOVERY_SECONDS = 20.0

# Relative timeline times are never earlier than this (freeze time slack)
FREEZE_TIME_SLACK_SECONDS = 20.0

# Post-round delay before the next round starts (mp_round_restart_delay).
# Gameplay later than this after a round end, with no start marker seen,
# belongs to a new round.
ROUND_RESTART_DELAY_SECONDS = 7.0

# Round structure
ROUNDS_PER_HALF = 12
MAX_HEALTH = 100
TEAM_SIZE = 5

# Identity sentinel for world/bot/unknown ids
BOT_IDENTITY = "BOT"


class Side(StrEnum):
    """Side a player is playing in a round."""

    T = "T"
    CT = "CT"

    @property
    def opposite(self) -> "Side":
        return Side.CT if self is Side.T else Side.T


# Winner inference from reason codes when the event has no usable winner field.
# 9/12 => T, 1/7/8 => CT, matching the demo tooling that produced the inputs.
REASON_WINNER: dict[int, Side] = {
    9: Side.T,
    12: Side.T,
    1: Side.CT,
    7: Side.CT,
    8: Side.CT,
}


class UtilityKind(StrEnum):
    """Grenade categories reported by *_detonate events."""

    SMOKE = "smoke"
    FLASH = "flash"
    HE = "he"
    MOLOTOV = "molotov"
    DECOY = "decoy"


class ItemAction(StrEnum):
    """Inventory transaction kinds."""

    PICKUP = "pickup"
    DROP = "drop"
    PURCHASE = "purchase"


# Equipment prices (keys are item codes without weapon_/item_ prefix)
WEAPON_VALUES: dict[str, int] = {
    # Pistols
    "glock": 200,
    "hkp2000": 200,
    "usp_silencer": 200,
    "p250": 300,
    "cz75a": 600,
    "tec9": 500,
    "fiveseven": 500,
    "deagle": 700,
    "revolver": 600,
    "elite": 300,
    # SMGs
    "mac10": 1050,
    "mp9": 1250,
    "ump45": 1200,
    "mp7": 1400,
    "mp5sd": 1400,
    "bizon": 1300,
    "p90": 2350,
    # Rifles
    "galilar": 1800,
    "famas": 1950,
    "ak47": 2700,
    "m4a1": 2900,
    "m4a4": 2900,
    "m4a1_silencer": 2900,
    "ssg08": 1700,
    "awp": 4750,
    "aug": 3300,
    "sg553": 3000,
    "sg556": 3000,
    "scar20": 5000,
    "g3sg1": 5000,
    # Heavy
    "nova": 1050,
    "xm1014": 2000,
    "sawedoff": 1100,
    "mag7": 1300,
    "m249": 5200,
    "negev": 1700,
    # Grenades
    "flashbang": 200,
    "smokegrenade": 300,
    "hegrenade": 300,
    "molotov": 400,
    "incgrenade": 500,
    "incendiarygrenade": 500,
    "decoy": 50,
    # Gear
    "kevlar": 650,
    "vest": 650,
    "assaultsuit": 1000,
    "vesthelm": 1000,
    "defuser": 400,
    "taser": 200,
}

# Floor for a loadout value (everyone spawns with a default pistol)
DEFAULT_LOADOUT_VALUE = 200

# Display names seen in item_* events with a null `item` code
ITEM_DISPLAY_NAMES: dict[str, str] = {
    "glock-18": "glock",
    "p2000": "hkp2000",
    "usp-s": "usp_silencer",
    "p250": "p250",
    "cz75-auto": "cz75a",
    "tec-9": "tec9",
    "five-seven": "fiveseven",
    "desert eagle": "deagle",
    "r8 revolver": "revolver",
    "dual berettas": "elite",
    "mac-10": "mac10",
    "mp9": "mp9",
    "ump-45": "ump45",
    "mp7": "mp7",
    "mp5-sd": "mp5sd",
    "pp-bizon": "bizon",
    "p90": "p90",
    "galil ar": "galilar",
    "famas": "famas",
    "ak-47": "ak47",
    "m4a4": "m4a1",
    "m4a1-s": "m4a1_silencer",
    "ssg 08": "ssg08",
    "awp": "awp",
    "aug": "aug",
    "sg 553": "sg553",
    "scar-20": "scar20",
    "g3sg1": "g3sg1",
    "nova": "nova",
    "xm1014": "xm1014",
    "sawed-off": "sawedoff",
    "mag-7": "mag7",
    "m249": "m249",
    "negev": "negev",
    "flashbang": "flashbang",
    "smoke grenade": "smokegrenade",
    "high explosive grenade": "hegrenade",
    "he grenade": "hegrenade",
    "molotov": "molotov",
    "incendiary grenade": "incgrenade",
    "decoy grenade": "decoy",
    "kevlar vest": "kevlar",
    "kevlar + helmet": "assaultsuit",
    "defuse kit": "defuser",
    "zeus x27": "taser",
}

# Side-exclusive weapons only. Shared weapons (awp, deagle, p250...) carry no side evidence.
WEAPON_SIDE_MAP: dict[str, Side] = {
    "glock": Side.T,
    "ak47": Side.T,
    "galilar": Side.T,
    "sg553": Side.T,
    "tec9": Side.T,
    "mac10": Side.T,
    "molotov": Side.T,
    "g3sg1": Side.T,
    "usp_silencer": Side.CT,
    "hkp2000": Side.CT,
    "m4a1": Side.CT,
    "m4a1_silencer": Side.CT,
    "m4a4": Side.CT,
    "famas": Side.CT,
    "aug": Side.CT,
    "fiveseven": Side.CT,
    "mp9": Side.CT,
    "incendiary": Side.CT,
    "scar20": Side.CT,
}

# Side evidence weights for starting-side detection
OBJECTIVE_SIDE_WEIGHT = 100
WEAPON_SIDE_WEIGHT = 1

HE_WEAPONS = {"hegrenade"}
FIRE_WEAPONS = {"molotov", "incendiary", "inferno", "incgrenade"}

# Loss bonus (CS2): 1400 + 500 per consecutive loss, counter capped at 4
BASE_LOSS_BONUS = 1400
LOSS_BONUS_INCREMENT = 500
MAX_LOSS_COUNT = 4

# ============================================================================
# Win probability model
# ============================================================================

# (T alive, CT alive) -> T round win probability, before the bomb is planted
WPA_MATRIX_PRE = np.array(
    [
        [0.00, 0.00, 0.00, 0.00, 0.00, 0.00],  # 0 T
        [1.00, 0.50, 0.28, 0.16, 0.10, 0.06],  # 1 T
        [1.00, 0.72, 0.50, 0.34, 0.23, 0.15],  # 2 T
        [1.00, 0.84, 0.66, 0.50, 0.36, 0.25],  # 3 T
        [1.00, 0.90, 0.77, 0.64, 0.50, 0.38],  # 4 T
        [1.00, 0.94, 0.85, 0.75, 0.62, 0.50],  # 5 T
    ]
)

# Same indexing, bomb planted
WPA_MATRIX_POST = np.array(
    [
        [0.00, 0.40, 0.30, 0.22, 0.16, 0.12],  # 0 T (CT still has to defuse)
        [1.00, 0.70, 0.52, 0.38, 0.28, 0.20],  # 1 T
        [1.00, 0.85, 0.70, 0.55, 0.42, 0.32],  # 2 T
        [1.00, 0.92, 0.82, 0.70, 0.57, 0.45],  # 3 T
        [1.00, 0.95, 0.89, 0.80, 0.69, 0.58],  # 4 T
        [1.00, 0.97, 0.93, 0.87, 0.78, 0.68],  # 5 T
    ]
)

WPA_ROUND_TIME = 115.0  # seconds of play after freeze end
WPA_C4_TIME = 40.0  # seconds from plant to detonation
WPA_TIME_PANIC = 30.0  # pre-plant time pressure kicks in below this
WPA_NO_KIT_DEFUSE_TIME = 10.0  # a kitless defuse needs 10 seconds
WPA_ECON_NORM = 5000.0
WPA_ECON_COEFF = 0.15
WPA_POST_PLANT_ECON_WEIGHT = 0.3
WPA_HEALTH_COEFF = 0.05
WPA_SCALING = 100.0  # probability deltas are credited in percentage points
WPA_KILLER_SHARE = 0.5  # fixed slice of a kill's swing, rest split by damage/flash weight
WPA_FLASH_ASSIST_WEIGHT = 30.0  # weight of a flash assist, in damage points
WPA_MIN_SWING = 0.001
