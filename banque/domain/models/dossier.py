"""Lending dossier aggregate.

A dossier is one lending case under review: borrower and loan ask
(origination), analysis inputs, risks, guarantees, documents, committee
decision and monitoring figures. It is owned by the snapshot store.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Field

from .base import CamelModel
from .rentabilite import RentabiliteSnapshot, Strategy


class DossierStatus(str, Enum):
    """Lifecycle status, in workflow order."""

    BROUILLON = "brouillon"
    ORIGINATION = "origination"
    ANALYSE = "analyse"
    COMITE = "comite"
    DECISION = "decision"
    MONITORING = "monitoring"
    CLOTURE = "cloture"


class CommitteeDecision(str, Enum):
    """Verdict recorded by the credit committee."""

    EN_ATTENTE = "en_attente"
    ACCORD = "accord"
    ACCORD_SOUS_CONDITIONS = "accord_sous_conditions"
    AJOURNE = "ajourne"
    REFUS = "refus"


# --- Origination ---

class PersonBorrower(CamelModel):
    """Individual borrower (personne physique)."""

    type: Literal["personne_physique"] = "personne_physique"
    prenom: str | None = None
    nom: str | None = None
    date_naissance: str | None = None
    nationalite: str | None = None
    adresse: str | None = None
    email: str | None = None
    telephone: str | None = None

    model_config = {"extra": "ignore"}


class CompanyBorrower(CamelModel):
    """Corporate borrower (personne morale)."""

    type: Literal["personne_morale"] = "personne_morale"
    raison_sociale: str | None = None
    forme_juridique: str | None = None
    siren_siret: str | None = None
    representant_legal: str | None = None
    adresse_siege: str | None = None
    email: str | None = None
    telephone: str | None = None

    model_config = {"extra": "ignore"}


Borrower = Annotated[Union[PersonBorrower, CompanyBorrower], Field(discriminator="type")]


class Origination(CamelModel):
    """Borrower identity, loan ask and project facts."""

    emprunteur: Borrower | None = None
    montant_demande: float | None = Field(None, ge=0, description="Requested loan amount in €")
    duree: int | None = Field(None, ge=0, description="Loan duration in months")
    taux_annuel_pct: float | None = Field(None, ge=0, description="Annual interest rate %")
    type_pret: str | None = Field(None, description="promotion, logement, marchand, investissement...")
    type_projet: str | None = Field(None, description="promotion, marchand or baseline")
    adresse_projet: str | None = None
    commune: str | None = None
    code_postal: str | None = None
    notes: str | None = None
    date_reception: str | None = None


# --- Analyse ---

class Budget(CamelModel):
    prix_achat: float | None = Field(None, ge=0, description="Purchase price in €")
    frais_notaire_pct: float | None = Field(None, ge=0, description="Notary fees %")
    budget_travaux: float | None = Field(None, ge=0, description="Works budget in €")
    frais_divers: float | None = Field(None, ge=0, description="Miscellaneous fees in €")
    apport: float | None = Field(None, ge=0, description="Cash contribution in €")

    def cout_total(self) -> float:
        """Acquisition cost: price, notary fees, works and fees."""
        prix = self.prix_achat or 0.0
        notaire = prix * (self.frais_notaire_pct or 0.0) / 100.0
        return prix + notaire + (self.budget_travaux or 0.0) + (self.frais_divers or 0.0)


class Revenus(CamelModel):
    strategie: Strategy | None = None
    prix_revente_cible: float | None = Field(None, ge=0, description="Target resale price in €")
    loyer_mensuel: float | None = Field(None, ge=0, description="Expected monthly rent in €")
    charges_mensuelles: float | None = Field(None, ge=0)
    taxe_fonciere_annuelle: float | None = Field(None, ge=0)
    tmi_pct: float | None = Field(None, ge=0)
    flat_tax_pct: float | None = Field(None, ge=0)
    use_flat_tax: bool = False
    revenus_mensuels: float | None = Field(None, ge=0, description="Borrower net monthly income in €")
    charges_existantes: float | None = Field(None, ge=0, description="Existing monthly debt service in €")


class Bien(CamelModel):
    valeur_estimee: float | None = Field(None, ge=0, description="Appraised value in €")
    anciennete: str | None = Field(None, description="neuf, recent or ancien")
    etat: str | None = Field(None, description="bon, moyen or mauvais")
    surface: float | None = Field(None, ge=0)
    dpe: str | None = None


class Calendrier(CamelModel):
    date_acquisition: str | None = None
    date_debut_travaux: str | None = None
    duree_travaux_mois: int | None = Field(None, ge=0)
    duree_operation_mois: int | None = Field(None, ge=0)


class Analyse(CamelModel):
    """Analysis inputs and the last profitability computation."""

    budget: Budget | None = None
    revenus: Revenus | None = None
    bien: Bien | None = None
    calendrier: Calendrier | None = None
    rentabilite: RentabiliteSnapshot | None = None


# --- Risks, guarantees, documents ---

class RiskItem(CamelModel):
    id: str
    categorie: str = "autre"
    label: str = ""
    niveau: str = Field(default="faible", description="faible, moyen, eleve or tres_eleve")
    statut: str = Field(default="present", description="present, absent or inconnu")
    commentaire: str | None = None

    @property
    def is_high(self) -> bool:
        return self.statut == "present" and self.niveau in ("eleve", "tres_eleve")

    @property
    def is_medium(self) -> bool:
        return self.statut == "present" and self.niveau == "moyen"


class GuaranteeItem(CamelModel):
    id: str
    type: str = Field(default="autre", description="hypotheque, caution, nantissement, gage...")
    label: str = ""
    description: str | None = None
    valeur_estimee: float | None = Field(None, ge=0)
    rang: int | None = None
    statut: str = Field(default="demandee", description="demandee or obtenue")


class Garanties(CamelModel):
    items: list[GuaranteeItem] = Field(default_factory=list)
    couverture_totale: float | None = Field(None, ge=0, description="Total coverage in €")
    commentaire: str | None = None

    def total_coverage(self) -> float:
        """Declared coverage, falling back to the sum of item values."""
        if self.couverture_totale:
            return self.couverture_totale
        return sum(g.valeur_estimee or 0.0 for g in self.items)


class DocumentItem(CamelModel):
    id: str
    nom: str = ""
    type: str = "autre"
    statut: str = Field(default="attendu", description="attendu, recu, valide or refuse")
    commentaire: str | None = None

    @property
    def is_received(self) -> bool:
        return self.statut in ("recu", "valide")


class Documents(CamelModel):
    items: list[DocumentItem] = Field(default_factory=list)

    def completude(self) -> float:
        """Share of received or validated documents, in %."""
        if not self.items:
            return 0.0
        received = sum(1 for d in self.items if d.is_received)
        return received / len(self.items) * 100.0


# --- Committee and monitoring ---

class DecisionRecord(CamelModel):
    avis: CommitteeDecision = CommitteeDecision.EN_ATTENTE
    conditions: list[str] = Field(default_factory=list)
    montant_accorde: float | None = Field(None, ge=0)
    taux_pct: float | None = Field(None, ge=0)
    duree: int | None = Field(None, ge=0)
    commentaire: str | None = None
    date_comite: str | None = None


class MonitoringSection(CamelModel):
    capital_restant_du: float | None = Field(None, ge=0)
    impayes: int = Field(default=0, ge=0, description="Unpaid instalments")
    commentaire: str | None = None


class Dossier(CamelModel):
    """Aggregate root of one lending case."""

    id: str = Field(..., min_length=1, description="Dossier identifier")
    reference: str | None = Field(None, description="Display reference, e.g. DOSS-2026-0042")
    label: str = Field(default="Sans nom", description="Display label")
    status: DossierStatus = DossierStatus.BROUILLON

    created_at: str | None = None
    updated_at: str | None = None
    decided_at: str | None = None

    origination: Origination | None = None
    analyse: Analyse | None = None
    risques: list[RiskItem] = Field(default_factory=list)
    garanties: Garanties | None = None
    documents: Documents | None = None
    decision: DecisionRecord | None = None
    monitoring: MonitoringSection | None = None

    # Persisted report payload, kept raw so a corrupt report stays inspectable
    report: dict[str, Any] | None = None
    report_generated: bool = False

    @property
    def borrower(self) -> PersonBorrower | CompanyBorrower | None:
        return self.origination.emprunteur if self.origination else None
