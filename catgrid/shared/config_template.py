PLUGIN_ID = "org.catgrid.plugin.category_grid"

default_config = {
    "_section_hint": (
        "General configuration settings for catgrid, which keeps the "
        "application grid grouped by desktop-entry category."
    ),
    "logging": {
        "_section_hint": "Logging output for the sorter.",
        "level": "INFO",
        "level_hint": "One of DEBUG, INFO, WARNING or ERROR.",
    },
    PLUGIN_ID: {
        "_section_hint": (
            "Groups applications by their most popular declared category, "
            "categories in alphabetical order."
        ),
        "ignored_categories": [
            "GTK",
            "GNOME",
            "Qt",
            "KDE",
            "XFCE",
            "Java",
            "Motif",
        ],
        "ignored_categories_hint": (
            "Toolkit or desktop tags that never decide a category on their own. "
            "An application whose categories are all in this list keeps them."
        ),
        "folder_placement": "last",
        "folder_placement_hint": (
            "Where folders go relative to the category groups: 'first' or 'last'."
        ),
        "reorder_delay_ms": 100,
        "reorder_delay_ms_hint": (
            "Delay (in milliseconds) between a trigger and the reorder, so the "
            "pass does not clash with grid animations."
        ),
    },
}
