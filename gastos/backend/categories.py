import re

from gastos.backend.parsing import fold_text

DEFAULT_CATEGORY = "Otros"

# First match wins. Vocabulary is written accent-free; concepts are folded
# before matching.
CATEGORY_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "Alimentación",
        re.compile(
            r"\b(almuerzo|desayuno|cena|comida|restaurante|corrientazo|mercado|super|supermercado"
            r"|d1|ara|exito|carulla|olimpica|cafe|tinto|panaderia|rappi|domicilio)\b"
        ),
    ),
    (
        "Transporte",
        re.compile(r"\b(uber|didi|cabify|taxi|metro|bus|transmilenio|peaje|gasolina|parqueadero)\b"),
    ),
    (
        "Hogar",
        re.compile(r"\b(arriendo|administracion|servicios|luz|energia|agua|gas|internet|aseo)\b"),
    ),
    (
        "Salud",
        re.compile(r"\b(farmacia|drogueria|medicamentos?|eps|consulta|examen|odont\w*)\b"),
    ),
    (
        "Suscripciones",
        re.compile(r"\b(netflix|spotify|prime|hbo|disney|icloud|google one|subscription|suscripcion)\b"),
    ),
    (
        "Entretenimiento",
        re.compile(r"\b(cine|bar|rumba|concierto|juegos?|steam)\b"),
    ),
    (
        "Compras",
        re.compile(r"\b(ropa|zapatos|amazon|mercadolibre|shein|falabella)\b"),
    ),
)

CATEGORY_LABELS: tuple[str, ...] = tuple(label for label, _ in CATEGORY_RULES) + (DEFAULT_CATEGORY,)


def categorize(concept: str | None) -> str:
    folded = fold_text((concept or "").strip())
    for label, pattern in CATEGORY_RULES:
        if pattern.search(folded):
            return label
    return DEFAULT_CATEGORY
