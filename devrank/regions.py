"""Regions whose developers can be ranked."""

from __future__ import annotations

from dataclasses import dataclass


class UnknownRegionError(KeyError):
    """Raised when a region key is not configured."""


@dataclass(slots=True, frozen=True)
class RegionConfig:
    key: str
    name: str
    local_name: str
    directory_name: str
    locations: tuple[str, ...]

    def search_queries(self, min_followers: int) -> list[str]:
        """Build the GitHub user search queries for this region."""

        return [f"followers:>{min_followers}+location:{location}" for location in self.locations]


REGIONS: dict[str, RegionConfig] = {
    "taiwan": RegionConfig(
        key="taiwan",
        name="Taiwan",
        local_name="台灣",
        directory_name="Taiwan",
        locations=(
            "Taiwan",
            "Taipei",
            "Kaohsiung",
            '"New Taipei"',
            "Taoyuan",
            "Taichung",
            "Tainan",
            "Hsinchu",
            "Keelung",
            "Chiayi",
            "Changhua",
            "Yunlin",
            "Nantou",
            "Pingtung",
            "Yilan",
            "Hualien",
            "Taitung",
            "Penghu",
            "Kinmen",
            "Matsu",
        ),
    ),
    "hongkong-macau": RegionConfig(
        key="hongkong-macau",
        name="Hong Kong and Macau",
        local_name="香港澳門",
        directory_name="HongKongAndMacau",
        locations=(
            '"Hong Kong"',
            "HK",
            "Hongkong",
            '"Hong Kong SAR"',
            '"香港"',
            "Macau",
            "Macao",
            '"Macau SAR"',
            '"澳門"',
        ),
    ),
    "malaysia": RegionConfig(
        key="malaysia",
        name="Malaysia",
        local_name="馬來西亞",
        directory_name="Malaysia",
        locations=(
            "Malaysia",
            '"Kuala Lumpur"',
            "KL",
            "Selangor",
            "Johor",
            "Penang",
            "Perak",
            "Sabah",
            "Sarawak",
            "Kedah",
            "Kelantan",
            "Terengganu",
            "Pahang",
            '"Negeri Sembilan"',
            "Melaka",
            "Malacca",
            "Perlis",
            "Putrajaya",
            "Labuan",
        ),
    ),
    "singapore": RegionConfig(
        key="singapore",
        name="Singapore",
        local_name="新加坡",
        directory_name="Singapore",
        locations=(
            "Singapore",
            "SG",
            '"新加坡"',
            '"Singapore, SG"',
        ),
    ),
}


def get_region(key: str) -> RegionConfig:
    normalized = key.strip().lower()
    try:
        return REGIONS[normalized]
    except KeyError:
        raise UnknownRegionError(f"Unknown region '{key}'. Choose one of: {', '.join(REGIONS)}") from None


__all__ = ["RegionConfig", "REGIONS", "UnknownRegionError", "get_region"]
