"""Required supporting documents per project type."""

from __future__ import annotations

from typing import NamedTuple


class RequiredDocument(NamedTuple):
    id: str
    label: str
    category: str


PROMOTION_DOCUMENTS: tuple[RequiredDocument, ...] = (
    RequiredDocument("promo-01", "Statuts de la société (SCI/SCCV)", "Juridique"),
    RequiredDocument("promo-02", "Extrait Kbis de moins de 3 mois", "Juridique"),
    RequiredDocument("promo-03", "Pièce d'identité du gérant / dirigeant", "Juridique"),
    RequiredDocument("promo-04", "Pouvoirs de signature", "Juridique"),
    RequiredDocument("promo-05", "Promesse de vente ou compromis signé", "Foncier"),
    RequiredDocument("promo-06", "Titre de propriété ou attestation notariée", "Foncier"),
    RequiredDocument("promo-07", "Permis de construire purgé de tout recours", "Urbanisme"),
    RequiredDocument("promo-08", "Plans architecturaux (masse, niveaux, coupes)", "Urbanisme"),
    RequiredDocument("promo-09", "Bilan prévisionnel de l'opération (TTC/HT)", "Financier"),
    RequiredDocument("promo-10", "Plan de trésorerie mensuel", "Financier"),
    RequiredDocument("promo-11", "Grille de prix de vente par lot", "Financier"),
    RequiredDocument("promo-12", "Bilans et liasses fiscales N-1, N-2 du promoteur", "Financier"),
    RequiredDocument("promo-13", "Tableau de pré-commercialisation (réservations)", "Commercial"),
    RequiredDocument("promo-14", "Étude de marché ou avis de valeur", "Commercial"),
    RequiredDocument("promo-15", "Étude géotechnique (G2 AVP minimum)", "Technique"),
    RequiredDocument("promo-16", "Attestation d'assurance Dommages-Ouvrage", "Assurance"),
    RequiredDocument("promo-17", "Contrat de maîtrise d'œuvre ou entreprise générale", "Technique"),
    RequiredDocument("promo-18", "Garantie Financière d'Achèvement (GFA)", "Assurance"),
)

MARCHAND_DOCUMENTS: tuple[RequiredDocument, ...] = (
    RequiredDocument("march-01", "Statuts de la société", "Juridique"),
    RequiredDocument("march-02", "Extrait Kbis de moins de 3 mois", "Juridique"),
    RequiredDocument("march-03", "Pièce d'identité du gérant / dirigeant", "Juridique"),
    RequiredDocument("march-04", "Promesse ou compromis de vente", "Acquisition"),
    RequiredDocument("march-05", "Titre de propriété ou acte notarié", "Acquisition"),
    RequiredDocument("march-06", "Diagnostics immobiliers obligatoires", "Technique"),
    RequiredDocument("march-07", "Plan de financement de l'opération", "Financier"),
    RequiredDocument("march-08", "Budget travaux détaillé (devis signés)", "Financier"),
    RequiredDocument("march-09", "Estimation de la valeur de revente", "Financier"),
    RequiredDocument("march-10", "Bilans et liasses fiscales N-1, N-2", "Financier"),
    RequiredDocument("march-11", "Tableau récapitulatif des opérations passées", "Financier"),
    RequiredDocument("march-12", "Descriptif des travaux envisagés", "Technique"),
    RequiredDocument("march-13", "Permis de construire ou déclaration préalable", "Urbanisme"),
    RequiredDocument("march-14", "Attestation d'assurance RC Pro", "Assurance"),
    RequiredDocument("march-15", "Planning prévisionnel (acquisition → revente)", "Commercial"),
)

BASELINE_DOCUMENTS: tuple[RequiredDocument, ...] = (
    RequiredDocument("base-01", "Pièce d'identité de l'emprunteur", "Juridique"),
    RequiredDocument("base-02", "Justificatif de domicile de moins de 3 mois", "Juridique"),
    RequiredDocument("base-03", "Avis d'imposition N-1 et N-2", "Financier"),
    RequiredDocument("base-04", "Trois derniers bulletins de salaire ou bilan comptable", "Financier"),
    RequiredDocument("base-05", "Relevés de comptes bancaires (3 derniers mois)", "Financier"),
    RequiredDocument("base-06", "Tableau d'endettement (crédits en cours)", "Financier"),
    RequiredDocument("base-07", "Compromis de vente ou promesse signée", "Acquisition"),
    RequiredDocument("base-08", "Estimation ou avis de valeur du bien", "Acquisition"),
    RequiredDocument("base-09", "Diagnostics immobiliers obligatoires", "Technique"),
    RequiredDocument("base-10", "Questionnaire de santé (assurance emprunteur)", "Assurance"),
    RequiredDocument("base-11", "Attestation d'assurance habitation (ou projet)", "Assurance"),
)

DOCUMENTS_BY_TYPE: dict[str, tuple[RequiredDocument, ...]] = {
    "promotion": PROMOTION_DOCUMENTS,
    "marchand": MARCHAND_DOCUMENTS,
    "baseline": BASELINE_DOCUMENTS,
}


def get_required_documents(project_type: str | None) -> tuple[RequiredDocument, ...]:
    """Documents required for a project type (baseline when unknown)."""
    return DOCUMENTS_BY_TYPE.get(project_type or "baseline", BASELINE_DOCUMENTS)


def get_document_categories(project_type: str | None) -> list[str]:
    """Distinct categories, in first-seen order."""
    return list(dict.fromkeys(d.category for d in get_required_documents(project_type)))
