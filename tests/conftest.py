"""Pytest fixtures for banque tests."""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from banque.application.services import DossierWorkflow, SnapshotStore  # noqa: E402
from banque.domain.models import Dossier  # noqa: E402
from banque.services import InMemoryBackend  # noqa: E402

TEST_KEY = "test.banque.snapshot"


@pytest.fixture
def backend():
    """Shared in-memory storage."""
    return InMemoryBackend()


@pytest.fixture
def store(backend):
    """Snapshot store over the in-memory backend."""
    return SnapshotStore(backend, key=TEST_KEY)


@pytest.fixture
def workflow(store):
    return DossierWorkflow(store)


@pytest.fixture
def boundary_form():
    """Resale case sitting between the GO and reserve thresholds (fr-FR strings)."""
    return {
        "strategy": "revente",
        "prix_achat": "200 000 €",
        "frais_notaire_pct": "0",
        "budget_travaux": "30 000 €",
        "frais_divers": "5 000 €",
        "prix_revente_cible": "270 000 €",
        "duree_mois": "12",
        "apport": "50 000 €",
    }


@pytest.fixture
def sample_dossier_data():
    """Complete resale dossier for a company borrower."""
    return {
        "id": "dossier-001",
        "label": "Immeuble rue Victor Hugo",
        "origination": {
            "emprunteur": {
                "type": "personne_morale",
                "raison_sociale": "SCI Les Tilleuls",
                "forme_juridique": "SCI",
                "siren_siret": "812 345 678",
                "representant_legal": "Claire Martin",
                "email": "contact@tilleuls.fr",
            },
            "montant_demande": 180000,
            "duree": 24,
            "taux_annuel_pct": 4.5,
            "type_pret": "marchand",
            "type_projet": "marchand",
            "adresse_projet": "12 rue Victor Hugo",
            "commune": "Lyon",
            "code_postal": "69002",
        },
        "analyse": {
            "budget": {
                "prix_achat": 200000,
                "frais_notaire_pct": 8,
                "budget_travaux": 30000,
                "frais_divers": 5000,
                "apport": 50000,
            },
            "revenus": {
                "strategie": "revente",
                "prix_revente_cible": 320000,
            },
            "bien": {"valeur_estimee": 210000, "surface": 120},
            "calendrier": {"duree_operation_mois": 12},
        },
        "risques": [
            {"id": "r1", "categorie": "inondation", "label": "Inondation", "niveau": "moyen", "statut": "present"},
            {"id": "r2", "categorie": "argiles", "label": "Retrait-gonflement des argiles", "niveau": "faible"},
        ],
        "garanties": {
            "items": [
                {"id": "g1", "type": "hypotheque", "label": "Hypothèque 1er rang", "valeur_estimee": 200000, "rang": 1, "statut": "obtenue"},
                {"id": "g2", "type": "caution", "label": "Caution du gérant", "valeur_estimee": 40000},
            ],
        },
        "documents": {
            "items": [
                {"id": "d1", "nom": "Statuts", "type": "Juridique", "statut": "valide"},
                {"id": "d2", "nom": "Kbis", "type": "Juridique", "statut": "recu"},
                {"id": "d3", "nom": "Compromis", "type": "Acquisition", "statut": "attendu"},
            ],
        },
    }


@pytest.fixture
def sample_dossier(sample_dossier_data):
    return Dossier.model_validate(sample_dossier_data)


@pytest.fixture
def active_dossier(store, sample_dossier_data):
    """Sample dossier stored and active."""
    return store.upsert_dossier(sample_dossier_data)
