"""
Reference State Data - SINGLE SOURCE OF TRUTH for the hardcoded baseline

Published fees, deadlines and draw rules per state for the current draw
cycle. The live baseline the airlock compares against is this data merged
with every scraped fee row that has already been approved.

DO NOT edit values here to "fix" a scrape. Corrections go through a new
scrape batch (or a manual snapshot) and the airlock review queue.

Amounts are USD. Non-resident values are the default; resident values
live under the resident_* keys.
"""

# =============================================================================
# DRAW SYSTEM VOCABULARY
# =============================================================================

POINT_SYSTEMS = ['preference', 'bonus', 'hybrid', 'random']

APPLICATION_APPROACHES = ['per_unit', 'per_species', 'per_state']

# Categories the crawl scheduler plans for when none are requested
DEFAULT_CRAWL_CATEGORIES = ['deadlines', 'fees', 'regulations', 'draw_odds']


# =============================================================================
# REFERENCE STATES
# =============================================================================

REFERENCE_STATES = {
    'CO': {
        'name': 'Colorado',
        'fg_url': 'https://cpw.state.co.us',
        'regulatory_url': 'https://cpw.state.co.us/hunting/big-game',
        'point_system': 'hybrid',
        'point_system_details': {
            'description': 'Preference points; 20% of licenses in high-demand codes drawn randomly',
            'preference_pct': 80,
            'random_pct': 20,
            'squared': False,
        },
        'application_approach': 'per_unit',
        'license_fees': {
            'qualifying_license': 101.54,
            'app_fee': 10.00,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Qualifying License', 'amount': 101.54, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 10.00, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 735.03,
            'mule_deer': 494.47,
            'pronghorn': 494.47,
            'moose': 2758.49,
            'bighorn_sheep': 2758.49,
            'mountain_goat': 2758.49,
        },
        'point_cost': {
            'elk': 100.00,
            'mule_deer': 100.00,
            'pronghorn': 100.00,
        },
        'resident_license_fees': {
            'qualifying_license': 41.72,
            'app_fee': 10.00,
            'point_fee': None,
        },
        'resident_tag_costs': {
            'elk': 66.49,
            'mule_deer': 46.49,
            'pronghorn': 46.49,
            'moose': 351.11,
            'bighorn_sheep': 351.11,
            'mountain_goat': 351.11,
        },
        'application_deadlines': {
            'elk': {'open': '2026-03-01', 'close': '2026-04-07'},
            'mule_deer': {'open': '2026-03-01', 'close': '2026-04-07'},
            'pronghorn': {'open': '2026-03-01', 'close': '2026-04-07'},
            'moose': {'open': '2026-03-01', 'close': '2026-04-07'},
            'bighorn_sheep': {'open': '2026-03-01', 'close': '2026-04-07'},
            'mountain_goat': {'open': '2026-03-01', 'close': '2026-04-07'},
        },
        'draw_result_dates': {
            'elk': '2026-05-29',
            'mule_deer': '2026-05-29',
            'pronghorn': '2026-05-29',
            'moose': '2026-05-29',
            'bighorn_sheep': '2026-05-29',
            'mountain_goat': '2026-05-29',
        },
        'once_in_a_lifetime': ['moose', 'bighorn_sheep', 'mountain_goat'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'moose', 'bighorn_sheep', 'mountain_goat'],
    },
    'WY': {
        'name': 'Wyoming',
        'fg_url': 'https://wgfd.wyo.gov',
        'regulatory_url': 'https://wgfd.wyo.gov/regulations',
        'point_system': 'hybrid',
        'point_system_details': {
            'description': 'Preference points for elk, deer and pronghorn; bonus points for moose and sheep',
            'preference_pct': 75,
            'random_pct': 25,
            'squared': False,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': None,
            'app_fee': 15.00,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Application Fee', 'amount': 15.00, 'frequency': 'per_species'},
            {'name': 'Conservation Stamp', 'amount': 21.50, 'frequency': 'annual'},
        ],
        'tag_costs': {
            'elk': 692.00,
            'mule_deer': 374.00,
            'pronghorn': 326.00,
            'moose': 2758.00,
            'bighorn_sheep': 2758.00,
            'mountain_goat': 2758.00,
        },
        'point_cost': {
            'elk': 52.00,
            'mule_deer': 41.00,
            'pronghorn': 31.00,
            'moose': 152.00,
            'bighorn_sheep': 152.00,
            'mountain_goat': 152.00,
        },
        'resident_tag_costs': {
            'elk': 57.00,
            'mule_deer': 42.00,
            'pronghorn': 42.00,
            'moose': 151.00,
            'bighorn_sheep': 151.00,
            'mountain_goat': 151.00,
        },
        'application_deadlines': {
            'elk': {'open': '2026-01-02', 'close': '2026-02-02'},
            'moose': {'open': '2026-01-02', 'close': '2026-03-02'},
            'bighorn_sheep': {'open': '2026-01-02', 'close': '2026-03-02'},
            'mountain_goat': {'open': '2026-01-02', 'close': '2026-03-02'},
            'mule_deer': {'open': '2026-01-02', 'close': '2026-06-01'},
            'pronghorn': {'open': '2026-01-02', 'close': '2026-06-01'},
        },
        'draw_result_dates': {
            'elk': '2026-05-21',
            'moose': '2026-05-14',
            'bighorn_sheep': '2026-05-14',
            'mountain_goat': '2026-05-14',
            'mule_deer': '2026-06-18',
            'pronghorn': '2026-06-18',
        },
        'once_in_a_lifetime': ['moose', 'bighorn_sheep', 'mountain_goat'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'moose', 'bighorn_sheep', 'mountain_goat'],
    },
    'MT': {
        'name': 'Montana',
        'fg_url': 'https://fwp.mt.gov',
        'regulatory_url': 'https://fwp.mt.gov/hunt/regulations',
        'point_system': 'bonus',
        'point_system_details': {
            'description': 'Squared bonus points; 50% of combination licenses to preference pool',
            'preference_pct': 50,
            'random_pct': 50,
            'squared': True,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 160.00,
            'app_fee': 10.00,
            'point_fee': 50.00,
        },
        'fee_schedule': [
            {'name': 'Base Hunting & Conservation License', 'amount': 160.00, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 10.00, 'frequency': 'per_species'},
            {'name': 'Bonus Point Fee', 'amount': 50.00, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 1254.00,
            'mule_deer': 704.00,
            'moose': 1275.00,
            'bighorn_sheep': 1275.00,
            'mountain_goat': 1275.00,
        },
        'point_cost': {
            'moose': 50.00,
            'bighorn_sheep': 50.00,
            'mountain_goat': 50.00,
        },
        'application_deadlines': {
            'elk': {'open': '2026-03-01', 'close': '2026-04-01'},
            'mule_deer': {'open': '2026-03-01', 'close': '2026-04-01'},
            'moose': {'open': '2026-04-01', 'close': '2026-05-01'},
            'bighorn_sheep': {'open': '2026-04-01', 'close': '2026-05-01'},
            'mountain_goat': {'open': '2026-04-01', 'close': '2026-05-01'},
        },
        'draw_result_dates': {
            'elk': '2026-04-22',
            'mule_deer': '2026-04-22',
            'moose': '2026-06-17',
            'bighorn_sheep': '2026-06-17',
            'mountain_goat': '2026-06-17',
        },
        'once_in_a_lifetime': ['moose', 'bighorn_sheep', 'mountain_goat'],
        'available_species': ['elk', 'mule_deer', 'moose', 'bighorn_sheep', 'mountain_goat'],
    },
    'AZ': {
        'name': 'Arizona',
        'fg_url': 'https://www.azgfd.com',
        'regulatory_url': 'https://www.azgfd.com/hunting/regulations',
        'point_system': 'bonus',
        'point_system_details': {
            'description': 'Bonus points; 20% of tags to max-point applicants, 80% random',
            'preference_pct': 20,
            'random_pct': 80,
            'squared': False,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 160.00,
            'app_fee': 15.00,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Combo Hunt & Fish License', 'amount': 160.00, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 15.00, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 665.00,
            'mule_deer': 315.00,
            'pronghorn': 315.00,
            'bighorn_sheep': 1815.00,
            'bison': 5415.00,
        },
        'point_cost': {},
        'application_deadlines': {
            'elk': {'open': '2026-01-13', 'close': '2026-02-10'},
            'pronghorn': {'open': '2026-01-13', 'close': '2026-02-10'},
            'mule_deer': {'open': '2026-05-12', 'close': '2026-06-09'},
            'bighorn_sheep': {'open': '2026-05-12', 'close': '2026-06-09'},
            'bison': {'open': '2026-05-12', 'close': '2026-06-09'},
        },
        'draw_result_dates': {
            'elk': '2026-04-10',
            'pronghorn': '2026-04-10',
            'mule_deer': '2026-07-24',
            'bighorn_sheep': '2026-07-24',
            'bison': '2026-07-24',
        },
        'once_in_a_lifetime': ['bighorn_sheep', 'bison'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'bighorn_sheep', 'bison'],
    },
    'NV': {
        'name': 'Nevada',
        'fg_url': 'https://www.ndow.org',
        'regulatory_url': 'https://www.ndow.org/hunt/regulations',
        'point_system': 'bonus',
        'point_system_details': {
            'description': 'Squared bonus points, random draw',
            'preference_pct': None,
            'random_pct': 100,
            'squared': True,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 142.00,
            'app_fee': 10.00,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Hunting License', 'amount': 142.00, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 10.00, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 1200.00,
            'mule_deer': 240.00,
            'pronghorn': 300.00,
            'bighorn_sheep': 1200.00,
            'mountain_goat': 1200.00,
        },
        'point_cost': {},
        'application_deadlines': {
            'elk': {'open': '2026-03-16', 'close': '2026-05-05'},
            'mule_deer': {'open': '2026-03-16', 'close': '2026-05-05'},
            'pronghorn': {'open': '2026-03-16', 'close': '2026-05-05'},
            'bighorn_sheep': {'open': '2026-03-16', 'close': '2026-05-05'},
            'mountain_goat': {'open': '2026-03-16', 'close': '2026-05-05'},
        },
        'draw_result_dates': {
            'elk': '2026-05-22',
            'mule_deer': '2026-05-22',
            'pronghorn': '2026-05-22',
            'bighorn_sheep': '2026-05-22',
            'mountain_goat': '2026-05-22',
        },
        'once_in_a_lifetime': [],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'bighorn_sheep', 'mountain_goat'],
    },
    'UT': {
        'name': 'Utah',
        'fg_url': 'https://wildlife.utah.gov',
        'regulatory_url': 'https://wildlife.utah.gov/hunting/regulations',
        'point_system': 'bonus',
        'point_system_details': {
            'description': 'Bonus points; half of permits to max-point applicants, half random',
            'preference_pct': 50,
            'random_pct': 50,
            'squared': False,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 117.00,
            'app_fee': 16.00,
            'point_fee': 75.00,
        },
        'fee_schedule': [
            {'name': 'Hunting License', 'amount': 117.00, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 16.00, 'frequency': 'per_species'},
            {'name': 'Bonus Point Fee', 'amount': 75.00, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 1285.00,
            'mule_deer': 468.00,
            'pronghorn': 518.00,
            'moose': 2368.00,
            'bighorn_sheep': 2368.00,
        },
        'point_cost': {},
        'application_deadlines': {
            'elk': {'open': '2026-03-19', 'close': '2026-04-23'},
            'mule_deer': {'open': '2026-03-19', 'close': '2026-04-23'},
            'pronghorn': {'open': '2026-03-19', 'close': '2026-04-23'},
            'moose': {'open': '2026-03-19', 'close': '2026-04-23'},
            'bighorn_sheep': {'open': '2026-03-19', 'close': '2026-04-23'},
        },
        'draw_result_dates': {
            'elk': '2026-05-28',
            'mule_deer': '2026-05-28',
            'pronghorn': '2026-05-28',
            'moose': '2026-05-28',
            'bighorn_sheep': '2026-05-28',
        },
        'once_in_a_lifetime': ['moose', 'bighorn_sheep'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'moose', 'bighorn_sheep'],
    },
    'ID': {
        'name': 'Idaho',
        'fg_url': 'https://idfg.idaho.gov',
        'regulatory_url': 'https://idfg.idaho.gov/rules',
        'point_system': 'random',
        'point_system_details': {
            'description': 'Pure random draw, no points',
            'preference_pct': None,
            'random_pct': 100,
            'squared': None,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 185.00,
            'app_fee': 16.75,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Hunting License', 'amount': 185.00, 'frequency': 'annual'},
            {'name': 'Application Fee', 'amount': 16.75, 'frequency': 'per_species'},
        ],
        'tag_costs': {
            'elk': 651.75,
            'mule_deer': 351.75,
            'pronghorn': 351.75,
            'moose': 2101.75,
            'bighorn_sheep': 2101.75,
            'mountain_goat': 2101.75,
        },
        'point_cost': {},
        'application_deadlines': {
            'moose': {'open': '2026-04-01', 'close': '2026-04-30'},
            'bighorn_sheep': {'open': '2026-04-01', 'close': '2026-04-30'},
            'mountain_goat': {'open': '2026-04-01', 'close': '2026-04-30'},
            'elk': {'open': '2026-05-01', 'close': '2026-06-05'},
            'mule_deer': {'open': '2026-05-01', 'close': '2026-06-05'},
            'pronghorn': {'open': '2026-05-01', 'close': '2026-06-05'},
        },
        'draw_result_dates': {
            'moose': '2026-05-29',
            'bighorn_sheep': '2026-05-29',
            'mountain_goat': '2026-05-29',
            'elk': '2026-07-10',
            'mule_deer': '2026-07-10',
            'pronghorn': '2026-07-10',
        },
        'once_in_a_lifetime': ['moose', 'bighorn_sheep', 'mountain_goat'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'moose', 'bighorn_sheep', 'mountain_goat'],
    },
    'NM': {
        'name': 'New Mexico',
        'fg_url': 'https://www.wildlife.state.nm.us',
        'regulatory_url': 'https://www.wildlife.state.nm.us/hunting/rules',
        'point_system': 'random',
        'point_system_details': {
            'description': 'Random draw with a 10% non-resident quota, no points',
            'preference_pct': None,
            'random_pct': 100,
            'squared': None,
        },
        'application_approach': 'per_species',
        'license_fees': {
            'qualifying_license': 65.00,
            'app_fee': 15.00,
            'point_fee': None,
        },
        'fee_schedule': [
            {'name': 'Game Hunting License', 'amount': 65.00, 'frequency': 'annual'},
            {'name': 'Habitat Management & Access Validation', 'amount': 4.00, 'frequency': 'annual'},
        ],
        'tag_costs': {
            'elk': 773.00,
            'mule_deer': 283.00,
            'pronghorn': 283.00,
            'bighorn_sheep': 3173.00,
            'oryx': 1610.00,
            'ibex': 1610.00,
        },
        'point_cost': {},
        'application_deadlines': {
            'elk': {'open': '2026-01-06', 'close': '2026-03-18'},
            'mule_deer': {'open': '2026-01-06', 'close': '2026-03-18'},
            'pronghorn': {'open': '2026-01-06', 'close': '2026-03-18'},
            'bighorn_sheep': {'open': '2026-01-06', 'close': '2026-03-18'},
            'oryx': {'open': '2026-01-06', 'close': '2026-03-18'},
            'ibex': {'open': '2026-01-06', 'close': '2026-03-18'},
        },
        'draw_result_dates': {
            'elk': '2026-04-22',
            'mule_deer': '2026-04-22',
            'pronghorn': '2026-04-22',
            'bighorn_sheep': '2026-04-22',
            'oryx': '2026-04-22',
            'ibex': '2026-04-22',
        },
        'once_in_a_lifetime': ['bighorn_sheep', 'oryx', 'ibex'],
        'available_species': ['elk', 'mule_deer', 'pronghorn', 'bighorn_sheep', 'oryx', 'ibex'],
    },
}

# All state codes with reference data
REFERENCE_STATE_IDS = sorted(REFERENCE_STATES.keys())


def get_state_name(state_id: str) -> str:
    """
    Get the display name for a state code.

    Args:
        state_id: Two-letter code (e.g., 'CO', 'wy')

    Returns:
        Display name, or the normalized code if the state is unknown
    """
    code = state_id.upper().strip()
    reference = REFERENCE_STATES.get(code)
    return reference['name'] if reference else code


def is_reference_state(state_id: str) -> bool:
    """Check whether a state has hardcoded reference data."""
    return state_id.upper().strip() in REFERENCE_STATES
