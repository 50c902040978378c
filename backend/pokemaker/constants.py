"""Option lists for the creature form and the defaults stub records start from."""

CREATURE_TYPES = [
    "Normal", "Fire", "Water", "Electric",
    "Grass", "Ice", "Fighting", "Poison",
    "Ground", "Flying", "Psychic", "Bug",
    "Rock", "Ghost", "Dragon", "Dark",
    "Steel", "Fairy",
]

EVOLUTION_STAGES = ["Basic", "Stage 1", "Stage 2"]

GROWTH_RATES = [
    "Erratic",
    "Fast",
    "Medium Fast",
    "Medium Slow",
    "Slow",
    "Fluctuating",
]

EGG_GROUPS = [
    "Monster",
    "Water 1",
    "Water 2",
    "Water 3",
    "Bug",
    "Flying",
    "Field",
    "Fairy",
    "Grass",
    "Human-Like",
    "Mineral",
    "Amorphous",
    "Ditto",
    "Dragon",
    "Undiscovered",
]

BODY_SHAPES = [
    "Bipedal with tail",
    "Bipedal without tail",
    "Quadruped",
    "Serpentine",
    "Multiple bodies",
    "With wings",
    "Tentacles or fins",
    "Head and base",
    "Head and arms",
    "Head only",
    "Insectoid",
    "Multiple legs",
]

CREATURE_COLORS = [
    "Red",
    "Blue",
    "Yellow",
    "Green",
    "Black",
    "Brown",
    "Purple",
    "Gray",
    "White",
    "Pink",
]

HEIGHT_UNITS = ["feet", "meters"]
WEIGHT_UNITS = ["pounds", "kilograms"]

STAT_FIELDS = ["hp", "attack", "defense", "special_attack", "special_defense", "speed"]
STAT_MIN = 1
STAT_MAX = 255

GENDER_PERCENT_TOTAL = 100

# Primary type given to records created only to close an evolution link.
STUB_TYPE_PRIMARY = "Normal"

# Sort keys accepted by the gallery listing.
GALLERY_SORTS = ["newest", "oldest", "name", "number"]
