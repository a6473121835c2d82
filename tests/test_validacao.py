from datetime import date

import pytest

from dentalcare.errors import ErroValidacao
from dentalcare.validacao import (
    data_ou_none,
    email_ou_none,
    exigir_senha_forte,
    forca_senha,
    idade,
    normalizar_cep,
    normalizar_cpf,
    numero,
    obrigatorio,
    percentual_ou_none,
    senha_valida,
)


def test_forca_senha_valida():
    f = forca_senha("Abc123!!")
    assert f.min_length and f.has_uppercase and f.has_number and f.has_special_char
    assert f.valida


@pytest.mark.parametrize(
    "senha, criterio",
    [
        ("abc12345", "has_uppercase"),
        ("Abc!1", "min_length"),
        ("Abcdefg!", "has_number"),
        ("Abcdefg1", "has_special_char"),
    ],
)
def test_forca_senha_criterio_faltando(senha, criterio):
    f = forca_senha(senha)
    assert getattr(f, criterio) is False
    assert not senha_valida(senha)


def test_exigir_senha_forte_confirmacao_diferente():
    with pytest.raises(ErroValidacao) as exc:
        exigir_senha_forte("Abcdef1!", "Abcdef1?")
    assert exc.value.mensagem == "As senhas não coincidem"
    assert "confirmacao" in exc.value.campos


def test_exigir_senha_forte_fraca():
    with pytest.raises(ErroValidacao) as exc:
        exigir_senha_forte("abc12345", "abc12345")
    assert "password" in exc.value.campos


def test_obrigatorio():
    assert obrigatorio("  Maria ", "nome") == "Maria"
    with pytest.raises(ErroValidacao) as exc:
        obrigatorio("   ", "nome")
    assert exc.value.campos == {"nome": "Obrigatório"}


def test_numero_com_fallback():
    assert numero("12,5") == 12.5
    assert numero("") == 0.0
    assert numero("abc", 3.0) == 3.0
    assert numero(None, 1.0) == 1.0
    assert numero(7) == 7.0


def test_percentual_fora_da_faixa():
    assert percentual_ou_none("", "comissao") is None
    assert percentual_ou_none("30", "comissao") == 30.0
    with pytest.raises(ErroValidacao):
        percentual_ou_none(101, "comissao")


def test_cpf_e_cep():
    assert normalizar_cpf("123.456.789-09") == "12345678909"
    assert normalizar_cpf("") is None
    with pytest.raises(ErroValidacao):
        normalizar_cpf("123")
    assert normalizar_cep("01310-100") == "01310100"


def test_email():
    assert email_ou_none(" Maria@Exemplo.COM ") == "maria@exemplo.com"
    assert email_ou_none("") is None
    with pytest.raises(ErroValidacao):
        email_ou_none("maria@")


def test_datas_e_idade():
    assert data_ou_none("2010-05-20", "d") == date(2010, 5, 20)
    assert data_ou_none("20/05/2010", "d") == date(2010, 5, 20)
    with pytest.raises(ErroValidacao):
        data_ou_none("20-05-2010", "d")
    assert idade(date(2010, 5, 20), date(2028, 5, 19)) == 17
    assert idade(date(2010, 5, 20), date(2028, 5, 20)) == 18
