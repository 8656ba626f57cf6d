"""Shared fixtures: a small bird dataset."""

import json
import logging

import pytest

from bird_db.query import BirdQueryEngine
from bird_db.storage import DatasetStore


def make_records():
    return [
        {
            "Sequence": 1,
            "Scientific_name": "Aquila chrysaetos",
            "English_name_AviList": "Golden Eagle",
            "English_name_Clements_v2024": "Golden Eagle",
            "English_name_BirdLife_v9": "Golden Eagle",
            "Order": "Accipitriformes",
            "Family": "Accipitridae",
            "Taxon_rank": "species",
            "IUCN_Red_List_Category": "LC",
            "Range": "Holarctic, from Alaska to North Africa",
            "Authority": "(Linnaeus, 1758)",
            "Extinct_or_possibly_extinct": "",
            "BirdLife_DataZone_URL": "https://datazone.birdlife.org/species/factsheet/golden-eagle-aquila-chrysaetos",
            "Birds_of_the_World_URL": "",
        },
        {
            "Sequence": 2,
            "Scientific_name": "Aquila nipalensis",
            "English_name_AviList": "Steppe Eagle",
            "Order": "Accipitriformes",
            "Family": "Accipitridae",
            "Taxon_rank": "species",
            "IUCN_Red_List_Category": "EN",
            "Range": "Steppes of eastern Europe and central Asia",
            "Authority": "(Hodgson, 1833)",
            "Extinct_or_possibly_extinct": "",
        },
        {
            "Sequence": 3,
            "Scientific_name": "Aquila chrysaetos canadensis",
            "English_name_AviList": "",
            "Order": "Accipitriformes",
            "Family": "Accipitridae",
            "Taxon_rank": "subspecies",
            "IUCN_Red_List_Category": "",
            "Range": "North America",
            "Authority": "(Linnaeus, 1758)",
        },
        {
            "Sequence": 4,
            "Scientific_name": "Raphus cucullatus",
            "English_name_AviList": "Dodo",
            "Order": "Columbiformes",
            "Family": "Columbidae",
            "Taxon_rank": "species",
            "IUCN_Red_List_Category": "EX",
            "Range": "Mauritius",
            "Authority": "(Linnaeus, 1758)",
            "Extinct_or_possibly_extinct": "Extinct",
            "Original_description_URL": "https://www.biodiversitylibrary.org/page/726886",
        },
        {
            "Sequence": 5,
            "Scientific_name": "Strix aluco",
            "English_name_AviList": "Tawny Owl",
            "Order": "Strigiformes",
            "Family": "Strigidae",
            "Taxon_rank": "species",
            "IUCN_Red_List_Category": "LC",
            "Range": "Europe and western Asia",
            "Authority": "Linnaeus, 1758",
        },
        {
            "Sequence": 6,
            "Scientific_name": "Ninox novaeseelandiae",
            "English_name_AviList": "Morepork",
            "Order": "Strigiformes",
            "Family": "Strigidae",
            "Taxon_rank": "species",
            "IUCN_Red_List_Category": "LC",
            "Range": "New Zealand and Norfolk Island",
            "Authority": "(Gmelin, JF, 1788)",
        },
    ]


@pytest.fixture
def records():
    return make_records()


@pytest.fixture
def store(records):
    return DatasetStore.from_records(records)


@pytest.fixture
def engine(store):
    return BirdQueryEngine(store)


@pytest.fixture
def data_file(tmp_path, records):
    """Write the sample dataset to a JSON file."""
    path = tmp_path / "birdIndex.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
