"""Templates written to a fresh ``templates.json``."""

from __future__ import annotations

from .models import CaseStyle, Template


def default_templates() -> list[Template]:
    """Return the bootstrap template set."""
    return [
        Template(
            id="documents",
            name="Documents",
            description="General documents organized by type and date",
            base_path="~/Documents",
            naming_pattern="{file_category_1}/{file_category_2}/{file_title}",
            case_style=CaseStyle.KEBAB,
            folder_whitelist=[
                "Reports",
                "Reports/Financial",
                "Reports/Business",
                "Reports/Personal",
                "Contracts",
                "Invoices",
                "Letters",
                "Forms",
                "Receipts",
                "Certificates",
                "References",
                "Templates",
                "Archives",
            ],
        ),
        Template(
            id="downloads",
            name="Downloads",
            description="Automatically organize downloaded files by type",
            base_path="~/Downloads",
            naming_pattern="{file_category_1}/{file_title}",
            case_style=CaseStyle.KEBAB,
            auto_organize=True,
            watch=True,
            folder_whitelist=[
                "Documents",
                "Images",
                "Videos",
                "Audio",
                "Archives",
                "Software",
                "Installers",
                "Temporary",
            ],
        ),
        Template(
            id="desktop",
            name="Desktop",
            description="Keep desktop clean with automatic organization",
            base_path="~/Desktop",
            naming_pattern="{file_category_1}/{file_title}",
            case_style=CaseStyle.KEBAB,
            auto_organize=True,
            watch=True,
            folder_whitelist=["Work", "Personal", "Projects", "Temporary"],
        ),
        Template(
            id="pictures",
            name="Pictures",
            description="Photos organized by date and type",
            base_path="~/Pictures",
            naming_pattern="{file_category_1}/{file_date_created}/{file_title}",
            case_style=CaseStyle.KEBAB,
            auto_organize=True,
            watch=True,
            folder_whitelist=[
                "Photos",
                "Photos/Family",
                "Photos/Travel",
                "Photos/Events",
                "Screenshots",
                "Wallpapers",
                "Artwork",
                "Diagrams",
            ],
        ),
        Template(
            id="music",
            name="Music",
            description="Music library organized by artist and album",
            base_path="~/Music",
            naming_pattern="{music_artist}/{music_album}/{file_title}",
            case_style=CaseStyle.KEBAB,
            auto_organize=True,
            folder_whitelist=[
                "Library",
                "Playlists",
                "Podcasts",
                "Audiobooks",
                "Soundtracks",
                "Recordings",
            ],
        ),
        Template(
            id="creative",
            name="Creative",
            description="Open-ended structure chosen by the classifier",
            base_path="~/Creative",
            naming_pattern="{file_category_1}/{file_title}",
            case_style=CaseStyle.KEBAB,
        ),
    ]


__all__ = ["default_templates"]
