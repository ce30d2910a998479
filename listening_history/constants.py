"""Tunable constants shared by the index, the search helpers and the plots."""

# Constants for listen classification and ranking
ANALYSIS_CONSTANTS = {
    'FULL_LISTEN_FALLBACK_MS': 30000,  # used as the track length when it is unknown
    'NINETY_PERCENT_RATIO': 0.9,
    'FULL_SORT_MAX_CANDIDATES': 64,  # below this a plain sort beats heap selection
    'DEFAULT_TOP_N': 10,
    'MIN_PERIOD_DAYS': 1,
}

# Constants for search and scoring
SEARCH_CONSTANTS = {
    'TRACK_WEIGHT': 1.0,
    'ARTIST_WEIGHT': 0.8,
    'ALBUM_WEIGHT': 0.6,
    'COMBINED_WEIGHT': 0.7,
    'DEFAULT_MIN_SCORE': 75,
    'SEARCH_MIN_SCORE': 70,
    'DEFAULT_SEARCH_LIMIT': 20,
    'MAX_PLAY_BONUS': 5,
    'PLAY_BONUS_DIVISOR': 1000,
    'FLOAT_EPSILON': 1e-10,
}

# Constants for figure styling
PLOT_CONSTANTS = {
    'TEMPLATE': 'plotly_dark',
    'BACKGROUND': '#0e1117',
    'LINE_COLOR': '#FF6B6B',
    'HEIGHT': 600,
    'OUTPUT_DIR': 'plots',
}
