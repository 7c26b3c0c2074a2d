"""
Theme for the MoniSim bedside monitor.

Colors follow the usual bedside conventions: green ECG, cyan pleth,
yellow respiration, red pressures. Style builders return Qt stylesheet
strings.
"""

# =============================================================================
# COLORS
# =============================================================================

COLORS = {
    # Surfaces
    'background': '#05080C',
    'background_alt': '#0A0E14',
    'panel': '#11161E',
    'card': '#171E29',
    'header': '#0D1218',

    # Borders
    'border': '#263040',
    'border_light': '#34425A',

    # Text
    'text': '#E7ECF4',
    'text_secondary': '#B8C2D2',
    'text_dim': '#738096',

    # Controls
    'control': '#18202C',
    'control_hover': '#202A38',
    'control_pressed': '#283346',

    # Accents
    'primary': '#4C86F7',
    'success': '#2FB36D',
    'warning': '#E1A644',
    'danger': '#E5484D',

    # Channels and numerics
    'ecg': '#35D07F',
    'pleth': '#3EC7E0',
    'resp': '#F2D14B',
    'bp': '#E0605E',
    'temp': '#6C9BD2',
    'co2': '#D6A34D',
}

FONTS = {
    'family': 'Arial',
    'size_small': '11px',
    'size_normal': '12px',
    'size_medium': '13px',
    'size_numeric': '38px',
    'size_numeric_compact': '24px',
}

# Vital -> (label, unit, color) for the numeric column, in display order.
VITAL_DISPLAY = {
    'heart_rate': ("HR", "bpm", COLORS['ecg']),
    'spo2': ("SpO₂", "%", COLORS['pleth']),
    'blood_pressure': ("NIBP", "mmHg", COLORS['bp']),
    'resp_rate': ("RR", "/min", COLORS['resp']),
    'etco2': ("EtCO₂", "mmHg", COLORS['co2']),
    'temperature': ("Temp", "°C", COLORS['temp']),
}


# =============================================================================
# STYLE BUILDERS
# =============================================================================

def get_base_widget_style():
    return f"""
        QWidget {{
            background-color: {COLORS['background']};
            color: {COLORS['text']};
            font-family: {FONTS['family']};
            font-size: {FONTS['size_normal']};
        }}
        QLabel {{
            background: none;
            color: {COLORS['text']};
        }}
    """


def get_button_style(variant="neutral", outlined=False, padding="6px 14px", min_width=None):
    """QPushButton style; variant picks the accent color."""
    variant_map = {
        "primary": COLORS['primary'],
        "success": COLORS['success'],
        "warning": COLORS['warning'],
        "danger": COLORS['danger'],
        "neutral": COLORS['control'],
    }
    base = variant_map.get(variant, COLORS['control'])
    is_neutral = base == COLORS['control']
    if outlined:
        background, text = "transparent", (COLORS['text'] if is_neutral else base)
        border = f"1px solid {COLORS['border_light'] if is_neutral else base}"
        hover = get_rgba(base, 0.12)
    else:
        background, text = base, (COLORS['text'] if is_neutral else "white")
        border = "1px solid transparent"
        hover = COLORS['control_hover'] if is_neutral else get_rgba(base, 0.85)
    min_width_rule = f"min-width: {min_width}px;" if min_width else ""
    return f"""
        QPushButton {{
            background-color: {background};
            color: {text};
            padding: {padding};
            border-radius: 6px;
            font-size: {FONTS['size_medium']};
            font-weight: 600;
            border: {border};
            {min_width_rule}
        }}
        QPushButton:hover {{
            background-color: {hover};
        }}
        QPushButton:checked {{
            background-color: {COLORS['control_pressed']};
            border: 1px solid {COLORS['primary']};
        }}
    """


def get_combobox_style():
    return f"""
        QComboBox {{
            background-color: {COLORS['control']};
            color: {COLORS['text']};
            border: 1px solid {COLORS['border']};
            border-radius: 6px;
            padding: 5px 10px;
            min-width: 140px;
        }}
        QComboBox QAbstractItemView {{
            background-color: {COLORS['panel']};
            color: {COLORS['text']};
            selection-background-color: {COLORS['primary']};
        }}
    """


def get_bar_style(border_edge="bottom"):
    edge = "bottom" if border_edge == "bottom" else "top"
    return f"""
        QFrame {{
            background-color: {COLORS['header']};
            border-{edge}: 1px solid {COLORS['border']};
        }}
    """


def get_numeric_frame_style(color, alarm=False):
    """Numeric tile: faint tint normally, solid border while alarming."""
    if alarm:
        return f"""
            QFrame {{
                background-color: {get_rgba(color, 0.18)};
                border: 2px solid {color};
                border-radius: 6px;
            }}
        """
    return f"""
        QFrame {{
            background-color: {get_rgba(color, 0.05)};
            border: 1px solid {get_rgba(COLORS['border'], 0.5)};
            border-radius: 6px;
        }}
    """


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def hex_to_rgb(hex_color):
    hex_color = hex_color.lstrip('#')
    r, g, b = tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))
    return f"{r}, {g}, {b}"


def get_rgba(hex_color, alpha):
    return f"rgba({hex_to_rgb(hex_color)}, {alpha})"
