"""Field-name search terms and fixed lookup tables used by the aggregator."""

from decimal import Decimal

from crm_dashboard.matching import normalize_text

# Monetary fallbacks when monetaryAmount is empty or zero
MONETARY_TERMS = (
    "valor",
    "honorarios",
    "honor-rios",
    "preco",
    "valor-contrato",
    "valor-do-contrato",
    "valor-causa",
    "honorarios-contratuais",
    "valor-total",
    "montante",
    "receita",
)

MEETING_DATE_TERMS = (
    "data-da-reuni-o",
    "data da reuniao",
    "agendamento",
    "dt reuniao",
    "data agendamento",
)

CONTRACT_DATE_TERMS = (
    "assinatura-do-contra",
    "assinatura",
    "data assinatura",
    "fechamento",
    "contrato",
    "data fechamento",
)

PAYMENT_DATE_TERMS = (
    "data-do-pagamento",
    "pagamento",
    "data pagamento",
)

ENTRY_VALUE_TERMS = (
    "-valor-da-entrada",
    "valor-da-entrada",
    "valor da entrada",
    "entrada",
    "sinal",
)

# Shorter lists used when deciding whether a card is visible in a stage
STAGE_CONTRACT_DATE_TERMS = ("assinatura-do-contra", "assinatura")
STAGE_MEETING_DATE_TERMS = ("data-da-reuni-o", "reuniao")

# Pipeline mechanics, channels and status words that are not service types
OPERATIONAL_TAGS = frozenset(
    normalize_text(t)
    for t in (
        "quente", "frio", "morno", "follow", "reunião", "agendada", "lead",
        "novo", "cliente", "importado", "wts", "arquivado", "perdido",
        "desqualificado", "contato", "agendado", "pendente", "sdr", "closer",
        "indicação", "google", "instagram", "facebook", "ads", "orgânico",
        "conversapp", "sistema", "automático", "clie", "prosp", "ativo",
        "etapa", "funil", "card", "won", "lost", "open",
    )
)

DEFAULT_SERVICE_COLOR = "#C59D5F"
DEFAULT_BADGE_COLOR = "#333"

TRAFFIC_COLORS = (
    ("google", "#4285F4"),
    ("insta", "#E1306C"),
)
DEFAULT_TRAFFIC_COLOR = "#808080"

UNASSIGNED_USER_ID = "unassigned"
UNASSIGNED_USER_NAME = "Unassigned"

# Breakdown items within this distance of an existing same-title item are duplicates
BREAKDOWN_DUPLICATE_TOLERANCE = Decimal("0.1")
