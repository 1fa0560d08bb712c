"""
Иерархия ошибок кодека Хаффмана.
Все ошибки наследуются от ValueError, поэтому вызывающий код может
ловить их так же, как ошибки разбора формата.
"""


class HuffmanError(ValueError):
    pass


class MalformedTree(HuffmanError):
    """Секция дерева обрезана или противоречива."""


class CorruptPayload(HuffmanError):
    """Полезная нагрузка не декодируется целиком в исходные данные."""


class UnsupportedInput(HuffmanError):
    """Вход не является байтами или превышает допустимый размер."""


class ContainerError(HuffmanError):
    """Неверный заголовок контейнера."""
