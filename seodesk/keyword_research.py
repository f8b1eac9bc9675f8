from datetime import date

PREFIXES = ['how to', 'best', 'top', 'why', 'what is']
SUFFIXES = ['guide', 'tutorial', 'tips', 'examples', 'comparison']
RELATED_TERMS = ['online', 'free', 'professional', 'advanced', 'beginner']


def generate_keyword_suggestions(seed: str, year: int = None) -> list:
    """Expand a seed term into long-tail keyword ideas."""
    seed = (seed or '').strip().lower()
    if not seed:
        raise ValueError('Search term is required')
    year = year or date.today().year

    suggestions = [f"{prefix} {seed}" for prefix in PREFIXES]
    suggestions += [f"{seed} {suffix}" for suffix in SUFFIXES]
    for term in RELATED_TERMS:
        suggestions.append(f"{seed} {term}")
        suggestions.append(f"{term} {seed}")

    suggestions += [
        f"how to {seed} for beginners",
        f"best {seed} guide {year}",
        f"{seed} tips and tricks",
        f"learn {seed} online",
        f"{seed} course",
    ]

    # dict keeps insertion order while dropping repeats
    return list(dict.fromkeys(suggestions))
