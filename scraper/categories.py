from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator

from scraper.errors import ValidationError


@dataclass(frozen=True)
class Category:
    id: str
    path: str
    name: str


class CategoryTable:
    """Read-only lookup of marketplace categories by id or URL path."""

    def __init__(self, categories: Iterable[Category]):
        self._by_id = MappingProxyType({c.id.upper(): c for c in categories})

    def __iter__(self) -> Iterator[Category]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return isinstance(category_id, str) and category_id.upper() in self._by_id

    def get(self, category_id: str) -> Category | None:
        return self._by_id.get(category_id.upper())

    def resolve(self, value: str) -> Category:
        """Resolve a category id (e.g. ``MLB1648``) or path (e.g. ``informatica``)."""
        entry = self.get(value)
        if entry:
            return entry

        lower = value.lower()
        for entry in self._by_id.values():
            if entry.path == lower or entry.path.endswith("/" + lower):
                return entry

        listing = "\n".join(f"  {c.id:<10} {c.name}" for c in self._by_id.values())
        raise ValidationError(f'Unknown category "{value}".\n\nValid categories:\n{listing}')


CATEGORIES = CategoryTable(
    Category(id, path, name)
    for id, path, name in [
        ("MLB3813", "celulares-telefones/acessorios-celulares", "Acessórios para Celulares"),
        ("MLB5672", "acessorios-veiculos", "Acessórios para Veículos"),
        ("MLB2818", "mais-categorias/adultos", "Adultos"),
        ("MLB271599", "agro", "Agro"),
        ("MLB1403", "alimentos-bebidas", "Alimentos e Bebidas"),
        ("MLB1368", "arte-papelaria-armarinho", "Arte, Papelaria e Armarinho"),
        ("MLB1613", "casa-moveis-decoracao/banheiros", "Banheiros"),
        ("MLB1384", "bebes", "Bebês"),
        ("MLB1246", "beleza-cuidado-pessoal", "Beleza e Cuidado Pessoal"),
        ("MLB1132", "brinquedos-hobbies", "Brinquedos e Hobbies"),
        ("MLB1430", "calcados-roupas-bolsas", "Calçados, Roupas e Bolsas"),
        ("MLB438928", "casa-moveis-decoracao/camas-colchoes-acessorios", "Camas, Colchões e Acessórios"),
        ("MLB1574", "casa-moveis-decoracao", "Casa, Móveis e Decoração"),
        ("MLB11466", "livros-revistas-comics/catalogos", "Catálogos"),
        ("MLB1055", "celulares-telefones/celulares-smartphones", "Celulares e Smartphones"),
        ("MLB1500", "construcao", "Construção"),
        ("MLB1618", "casa-moveis-decoracao/cozinha", "Cozinha"),
        ("MLB264051", "casa-moveis-decoracao/cuidado-casa-lavanderia", "Cuidado da Casa e Lavanderia"),
        ("MLB1039", "cameras-acessorios", "Câmeras e Acessórios"),
        ("MLB5726", "eletrodomesticos", "Eletrodomésticos"),
        ("MLB1000", "eletronicos-audio-video", "Eletrônicos, Áudio e Vídeo"),
        ("MLB1631", "casa-moveis-decoracao/enfeites-decoracao-casa", "Enfeites e Decoração da Casa"),
        ("MLB1276", "esportes-fitness", "Esportes e Fitness"),
        ("MLB263532", "ferramentas", "Ferramentas"),
        ("MLB12404", "festas-lembrancinhas", "Festas e Lembrancinhas"),
        ("MLB1144", "games", "Games"),
        ("MLB1582", "casa-moveis-decoracao/iluminacao-residencial", "Iluminação Residencial"),
        ("MLB1499", "industria-comercio", "Indústria e Comércio"),
        ("MLB1648", "informatica", "Informática"),
        ("MLB1182", "instrumentos-musicais", "Instrumentos Musicais"),
        ("MLB1621", "casa-moveis-decoracao/jardim-ar-livre", "Jardim e Ar Livre"),
        ("MLB3937", "joias-relogios", "Joias e Relógios"),
        ("MLB437616", "livros-revistas-comics/livros-fisicos", "Livros Físicos"),
        ("MLB436380", "casa-moveis-decoracao/moveis-casa", "Móveis para Casa"),
        ("MLB1168", "musica-filmes-seriados", "Música, Filmes e Seriados"),
        ("MLB7462", "celulares-telefones/pecas-celular", "Peças para Celular"),
        ("MLB1071", "pet-shop", "Pet Shop"),
        ("MLB2908", "celulares-telefones/radio-comunicadores", "Rádio Comunicadores"),
        ("MLB264586", "saude", "Saúde"),
        ("MLB7069", "casa-moveis-decoracao/seguranca-casa", "Segurança para Casa"),
        ("MLB417704", "celulares-telefones/smartwatches-acessorios", "Smartwatches e Acessórios"),
        ("MLB436246", "casa-moveis-decoracao/texteis-casa-decoracao", "Têxteis de Casa e Decoração"),
    ]
)
