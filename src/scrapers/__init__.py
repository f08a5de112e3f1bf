"""Scrapers package."""

from src.scrapers.authority import MozClient, OpenPageRankClient, SafeBrowsingClient
from src.scrapers.website import WebsiteScraper

__all__ = ["WebsiteScraper", "OpenPageRankClient", "MozClient", "SafeBrowsingClient"]
