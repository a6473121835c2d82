from __future__ import annotations

import base64
import json
import os
from datetime import date, datetime, time, timedelta, timezone

import requests
import streamlit as st

from dentalcare.busca import BuscaDebounced

st.set_page_config(page_title="DentalCare Pro", layout="wide")

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")

CAPACIDADES_ROTULOS = {
    "dashboard": "Dashboard",
    "pacientes": "Pacientes",
    "profissionais": "Profissionais",
    "agenda": "Agenda",
    "financeiro": "Financeiro",
    "estoque": "Estoque",
    "catalogo_servicos": "Catálogo de serviços",
    "configuracoes": "Configurações",
    "luzia": "LuzIA",
    "criar_usuarios": "Criar usuários",
    "gerenciar_permissoes": "Gerenciar permissões",
}



# JWT helpers (só para a UI, sem verificar assinatura)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return {}
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        return payload if isinstance(payload, dict) else {}
    except (ValueError, UnicodeDecodeError):
        return {}


def jwt_is_expired(token: str) -> bool:
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - 5)



# HTTP client (com JWT)

class ErroApi(Exception):
    def __init__(self, status: int, detalhe: str, campos: dict | None = None) -> None:
        super().__init__(detalhe)
        self.status = status
        self.campos = campos or {}


def _resposta(r: requests.Response):
    if r.status_code == 401:
        raise PermissionError("401 Unauthorized (token inválido/expirado ou backend reiniciado).")
    if r.status_code >= 400:
        try:
            corpo = r.json()
        except ValueError:
            corpo = {}
        raise ErroApi(r.status_code, str(corpo.get("detail") or r.text), corpo.get("campos"))
    return r.json()


def _headers(token: str | None) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


def api_get(path: str, token: str | None = None, params: dict | None = None):
    return _resposta(requests.get(f"{API_BASE}{path}", headers=_headers(token), params=params, timeout=10))


def api_post(path: str, payload: dict, token: str | None = None):
    return _resposta(requests.post(f"{API_BASE}{path}", headers=_headers(token), json=payload, timeout=15))


def api_put(path: str, payload: dict | list, token: str | None = None):
    return _resposta(requests.put(f"{API_BASE}{path}", headers=_headers(token), json=payload, timeout=10))


def api_delete(path: str, token: str | None = None):
    return _resposta(requests.delete(f"{API_BASE}{path}", headers=_headers(token), timeout=10))


def api_login(email: str, password: str) -> str:
    # OAuth2PasswordRequestForm => x-www-form-urlencoded
    r = requests.post(
        f"{API_BASE}/api/auth/login",
        data={"username": email, "password": password},
        timeout=10,
    )
    if r.status_code == 401:
        raise ErroApi(401, r.json().get("detail", "Credenciais inválidas"))
    r.raise_for_status()
    return r.json()["access_token"]


def mostrar_erro(e: Exception) -> None:
    if isinstance(e, PermissionError):
        st.session_state["auth_error"] = str(e)
        st.error("Sessão inválida. Clique em Sair e faça login novamente.")
    elif isinstance(e, ErroApi):
        st.error(str(e))
        for campo, msg in e.campos.items():
            st.caption(f"• {campo}: {msg}")
    else:
        st.error(str(e))


def executar(fn, *args, sucesso: str | None = None, **kwargs):
    try:
        res = fn(*args, **kwargs)
    except (PermissionError, ErroApi, requests.RequestException) as e:
        mostrar_erro(e)
        return None
    if sucesso:
        st.success(sucesso)
    return res


def do_logout() -> None:
    runner = st.session_state.pop("busca_runner", None)
    if runner:
        runner[1].cancelar()
    for k in ("token", "auth_error", "me"):
        st.session_state.pop(k, None)
    st.rerun()



# Busca global (debounce no cliente)

def _busca_runner(token: str) -> tuple[BuscaDebounced, dict]:
    """Um runner por token; o resultado chega numa thread e fica no dict `estado`."""
    atual = st.session_state.get("busca_runner")
    if atual and atual[0] == token:
        return atual[1], atual[2]
    if atual:
        atual[1].cancelar()

    estado: dict = {"termo": "", "resultados": [], "erro": None}

    def buscar(termo: str):
        # roda fora da thread do script: nada de st.* aqui
        try:
            return api_get("/api/busca", token=token, params={"q": termo})
        except (PermissionError, ErroApi, requests.RequestException) as e:
            return e

    def ao_resultado(termo: str, resultado) -> None:
        estado["termo"] = termo
        if isinstance(resultado, Exception):
            estado["resultados"], estado["erro"] = [], str(resultado)
        else:
            estado["resultados"], estado["erro"] = resultado or [], None

    runner = BuscaDebounced(buscar, ao_resultado)
    st.session_state["busca_runner"] = (token, runner, estado)
    return runner, estado


@st.fragment(run_every=0.5)
def resultados_busca(estado: dict) -> None:
    if estado["erro"]:
        st.caption(f"Busca indisponível: {estado['erro']}")
    for r in estado["resultados"]:
        st.caption(f"{'🧑' if r['tipo'] == 'paciente' else '🩺'} {r['nome']} · {r.get('detalhe') or ''}")



# Sidebar: login / cadastro

with st.sidebar:
    st.header("DentalCare Pro")
    token = st.session_state.get("token")

    if not token:
        modo = st.radio("Acesso", ["Entrar", "Criar conta", "Confirmar e-mail"], key="modo_acesso")

        if modo == "Entrar":
            u = st.text_input("E-mail", key="login_user")
            p = st.text_input("Senha", type="password", key="login_pass")
            if st.button("Entrar", key="login_btn"):
                try:
                    st.session_state["token"] = api_login(u.strip().lower(), p)
                    st.rerun()
                except (ErroApi, requests.RequestException) as e:
                    st.error(str(e))

        elif modo == "Criar conta":
            nome_clinica = st.text_input("Nome da clínica", key="cad_clinica")
            nome = st.text_input("Seu nome", key="cad_nome")
            email = st.text_input("E-mail", key="cad_email")
            senha = st.text_input("Senha", type="password", key="cad_senha")
            conf = st.text_input("Confirmar senha", type="password", key="cad_conf")
            if senha:
                forca = executar(api_post, "/api/auth/forca-senha", {"password": senha}) or {}
                st.caption(
                    " · ".join(
                        f"{'✔' if forca.get(k) else '✘'} {rotulo}"
                        for k, rotulo in [
                            ("min_length", "8+ caracteres"),
                            ("has_uppercase", "maiúscula"),
                            ("has_number", "número"),
                            ("has_special_char", "especial"),
                        ]
                    )
                )
            if st.button("Cadastrar", key="cad_btn"):
                res = executar(
                    api_post,
                    "/api/auth/cadastro",
                    {"nome_clinica": nome_clinica, "nome": nome, "email": email, "password": senha, "confirmacao": conf},
                )
                if res:
                    st.success("Conta criada. Confirme o e-mail para entrar.")
                    st.code(res["token_confirmacao"], language=None)

        else:
            tk = st.text_input("Token de confirmação", key="conf_token")
            if st.button("Confirmar", key="conf_btn"):
                executar(api_post, "/api/auth/confirmar", {"token": tk.strip()}, sucesso="E-mail confirmado.")
    else:
        if jwt_is_expired(token):
            st.error("Sessão expirada.")
        me = st.session_state.get("me")
        if me is None:
            me = executar(api_get, "/api/me", token=token)
            st.session_state["me"] = me
        if me:
            st.write(f"Usuário: **{me['nome']}** ({me['tipo']})")

            runner, estado_busca = _busca_runner(token)
            st.text_input(
                "Buscar pacientes e profissionais",
                key="busca_global",
                on_change=lambda: runner.digitar(st.session_state["busca_global"]),
            )
            resultados_busca(estado_busca)

        if st.session_state.get("auth_error"):
            st.error(st.session_state["auth_error"])
        if st.button("Sair", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("DentalCare Pro")

token = st.session_state.get("token")
me = st.session_state.get("me")
if not token or not me:
    st.info("Entre pela barra lateral para acessar o sistema.")
    st.stop()

menu: list[str] = me.get("menu", [])
abas = [c for c in ("dashboard", "pacientes", "profissionais", "catalogo_servicos", "agenda", "estoque", "financeiro", "luzia", "configuracoes") if c in menu]
if "criar_usuarios" in menu or "gerenciar_permissoes" in menu:
    abas.append("usuarios")
abas.append("perfil")

rotulos = {**CAPACIDADES_ROTULOS, "usuarios": "Usuários", "perfil": "Meu perfil"}
tabs = dict(zip(abas, st.tabs([rotulos[a] for a in abas])))


def _brl(v: float | None) -> str:
    return f"R$ {v or 0:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")



# Dashboard

if "dashboard" in tabs:
    with tabs["dashboard"]:
        cards = executar(api_get, "/api/dashboard/cards", token=token) or []
        resumo = executar(api_get, "/api/dashboard/resumo", token=token) or {}
        ativos = [c for c in cards if c["enabled"]]
        cols = st.columns(max(1, min(len(ativos), 4)))
        for i, card in enumerate(ativos):
            with cols[i % len(cols)]:
                if card["id"] == "receita":
                    st.metric(card["title"], _brl(resumo.get("receita")))
                elif card["id"] == "agenda":
                    st.markdown(f"**{card['title']}**")
                    for a in resumo.get("agenda", []):
                        st.caption(f"{a['hora']} · {a['titulo']} · {a['paciente']}")
                elif card["id"] == "atividade":
                    st.markdown(f"**{card['title']}**")
                    st.caption(card["description"])
                else:
                    st.metric(card["title"], resumo.get(card["id"], 0))



# Pacientes

if "pacientes" in tabs:
    with tabs["pacientes"]:
        with st.expander("Novo paciente"):
            c1, c2, c3 = st.columns(3)
            nome = c1.text_input("Nome*", key="pac_nome")
            nascimento = c2.date_input("Nascimento*", value=date(1990, 1, 1), min_value=date(1900, 1, 1), key="pac_nasc")
            cpf = c3.text_input("CPF", key="pac_cpf")
            email = c1.text_input("E-mail", key="pac_email")
            celular = c2.text_input("Celular", key="pac_cel")
            tipo_at = c3.selectbox("Atendimento", ["particular", "convenio"], key="pac_tipo")

            convenio_id = plano_id = None
            if tipo_at == "convenio":
                convenios = executar(api_get, "/api/convenios", token=token) or []
                conv = st.selectbox("Convênio", convenios, format_func=lambda c: c["nome"], key="pac_conv")
                if conv:
                    convenio_id = conv["id"]
                    planos = executar(api_get, f"/api/convenios/{conv['id']}/planos", token=token) or []
                    plano = st.selectbox("Plano", planos, format_func=lambda p: p["nome"], key="pac_plano")
                    plano_id = plano["id"] if plano else None

            cep = st.text_input("CEP", key="pac_cep")
            endereco = st.session_state.get("pac_endereco") or {}
            if st.button("Buscar CEP", key="pac_cep_btn"):
                endereco = executar(api_get, f"/api/cep/{cep}", token=token) or {}
                if not endereco:
                    st.warning("CEP não encontrado. Preencha o endereço manualmente.")
                st.session_state["pac_endereco"] = endereco
            logradouro = st.text_input("Logradouro", value=endereco.get("logradouro") or "", key="pac_log")
            numero = st.text_input("Número", key="pac_num")
            bairro = st.text_input("Bairro", value=endereco.get("bairro") or "", key="pac_bairro")
            cidade = st.text_input("Cidade", value=endereco.get("cidade") or "", key="pac_cidade")
            uf = st.text_input("UF", value=endereco.get("uf") or "", max_chars=2, key="pac_uf")

            if st.button("Salvar paciente", key="pac_submit"):
                executar(
                    api_post,
                    "/api/pacientes",
                    {
                        "nome": nome,
                        "data_nascimento": nascimento.isoformat(),
                        "cpf": cpf,
                        "email": email,
                        "celular": celular,
                        "tipo_atendimento": tipo_at,
                        "convenio_id": convenio_id,
                        "plano_id": plano_id,
                        "endereco": {
                            "cep": cep, "logradouro": logradouro, "numero": numero,
                            "bairro": bairro, "cidade": cidade, "uf": uf,
                        },
                    },
                    token=token,
                    sucesso="Paciente cadastrado.",
                )

        busca_pac = st.text_input("Buscar por nome, CPF, e-mail ou telefone", key="pac_busca")
        lista = executar(api_get, "/api/pacientes", token=token, params={"busca": busca_pac or None}) or []
        if not lista:
            st.info("Nenhum paciente encontrado.")
        for p in lista:
            c1, c2 = st.columns([6, 1])
            c1.write(f"**{p['nome']}** · {p.get('cpf') or '-'} · {p.get('email') or '-'} · {p['status']}")
            if c2.button("Excluir", key=f"pac_del_{p['id']}"):
                executar(api_delete, f"/api/pacientes/{p['id']}", token=token, sucesso="Paciente excluído.")
                st.rerun()



# Profissionais / Catálogo

def _crud_simples(chave: str, rota: str, campos: list[tuple[str, str]], resumo) -> None:
    with st.expander("Novo cadastro"):
        valores = {campo: st.text_input(rotulo, key=f"{chave}_{campo}") for campo, rotulo in campos}
        if st.button("Salvar", key=f"{chave}_submit"):
            executar(api_post, rota, valores, token=token, sucesso="Salvo.")
    for item in executar(api_get, rota, token=token) or []:
        c1, c2 = st.columns([6, 1])
        c1.write(resumo(item))
        if c2.button("Excluir", key=f"{chave}_del_{item['id']}"):
            executar(api_delete, f"{rota}/{item['id']}", token=token, sucesso="Excluído.")
            st.rerun()


if "profissionais" in tabs:
    with tabs["profissionais"]:
        _crud_simples(
            "prof",
            "/api/profissionais",
            [("nome", "Nome*"), ("conselho", "Conselho (CRO)"), ("especialidade", "Especialidade"),
             ("email", "E-mail"), ("telefone", "Telefone"), ("comissao_padrao_percent", "Comissão (%)")],
            lambda p: f"**{p['nome']}** · {p.get('conselho') or '-'} · {p.get('especialidade') or '-'}",
        )

if "catalogo_servicos" in tabs:
    with tabs["catalogo_servicos"]:
        _crud_simples(
            "serv",
            "/api/servicos",
            [("nome", "Nome*"), ("preco_base", "Preço base"), ("duracao_min", "Duração (min)"),
             ("comissao_padrao_percent", "Comissão (%)")],
            lambda sv: f"**{sv['nome']}** · {_brl(sv['preco_base'])} · {sv.get('duracao_min') or '-'} min",
        )



# Agenda

if "agenda" in tabs:
    with tabs["agenda"]:
        opcoes = executar(api_get, "/api/agenda/opcoes", token=token) or {"pacientes": [], "profissionais": []}
        profs = [{"id": "", "nome": "Todos"}] + opcoes["profissionais"]

        with st.expander("Filtros"):
            c1, c2, c3 = st.columns(3)
            f_busca = c1.text_input("Busca", key="ag_busca")
            f_prof = c2.selectbox("Profissional", profs, format_func=lambda p: p["nome"], key="ag_prof")
            f_tipo = c3.selectbox("Tipo", ["", "consulta", "procedimento", "retorno", "emergencia"], key="ag_tipo")
            f_status = c1.selectbox("Status", ["", "agendado", "confirmado", "em_andamento", "concluido", "cancelado"], key="ag_status")
            f_ini = c2.date_input("De", value=None, key="ag_ini")
            f_fim = c3.date_input("Até", value=None, key="ag_fim")

        params = {
            "busca": f_busca, "profissional_id": f_prof["id"], "tipo": f_tipo, "status": f_status,
            "data_inicio": f_ini.isoformat() if f_ini else None,
            "data_fim": f_fim.isoformat() if f_fim else None,
        }
        res = executar(api_get, "/api/agenda/eventos", token=token, params=params) or {"eventos": [], "filtros_ativos": 0}
        st.caption(f"{len(res['eventos'])} agendamento(s) · {res['filtros_ativos']} filtro(s) ativo(s)")
        for e in res["eventos"]:
            inicio = datetime.fromisoformat(e["data_inicio"])
            st.write(f"- **{inicio:%d/%m %H:%M}** {e['titulo']} · {e.get('paciente_nome')} · {e.get('profissional_nome')} · {e['status']}")

        st.divider()
        dia = st.date_input("Visão diária", value=date.today(), key="ag_dia")
        slots = executar(
            api_get, "/api/agenda/dia", token=token,
            params={"dia": dia.isoformat(), "profissional_id": f_prof["id"] or None},
        ) or []
        for slot in slots:
            if slot["livre"]:
                if st.button(f"{slot['horario']} · livre (novo agendamento)", key=f"slot_{slot['horario']}"):
                    st.session_state["ag_novo_inicio"] = slot["novo_evento_inicio"]
                    st.session_state["ag_novo_fim"] = slot["novo_evento_fim"]
            else:
                cols = st.columns([1] + [3] * slot["colunas"])
                cols[0].write(f"**{slot['horario']}**")
                for i, e in enumerate(slot["eventos"]):
                    cols[1 + i % slot["colunas"]].info(f"{e['titulo']}\n\n{e.get('paciente_nome')}")

        with st.expander("Novo agendamento", expanded=bool(st.session_state.get("ag_novo_inicio"))):
            sugestao = st.session_state.get("ag_novo_inicio")
            inicio_padrao = datetime.fromisoformat(sugestao) if sugestao else datetime.combine(dia, time(9, 0))
            titulo = st.text_input("Título*", key="ev_titulo")
            paciente = st.selectbox("Paciente*", opcoes["pacientes"], format_func=lambda p: p["nome"], key="ev_pac")
            prof = st.selectbox("Profissional*", opcoes["profissionais"], format_func=lambda p: p["nome"], key="ev_prof")
            c1, c2 = st.columns(2)
            d_ini = c1.date_input("Data", value=inicio_padrao.date(), key="ev_data")
            h_ini = c1.time_input("Início", value=inicio_padrao.time(), key="ev_ini")
            sugestao_fim = st.session_state.get("ag_novo_fim")
            fim_padrao = datetime.fromisoformat(sugestao_fim) if sugestao_fim else inicio_padrao + timedelta(hours=1)
            h_fim = c2.time_input("Fim", value=fim_padrao.time(), key="ev_fim")
            tipo = c2.selectbox("Tipo", ["consulta", "procedimento", "retorno", "emergencia"], key="ev_tipo")
            obs = st.text_area("Observações", key="ev_obs")
            if st.button("Agendar", key="ev_submit"):
                res = executar(
                    api_post,
                    "/api/agenda/eventos",
                    {
                        "titulo": titulo,
                        "paciente_id": paciente["id"] if paciente else None,
                        "profissional_id": prof["id"] if prof else None,
                        "data_inicio": datetime.combine(d_ini, h_ini).isoformat(),
                        "data_fim": datetime.combine(d_ini, h_fim).isoformat(),
                        "tipo": tipo,
                        "observacoes": obs,
                    },
                    token=token,
                    sucesso="Agendamento criado.",
                )
                if res and res["conflitos"]:
                    st.warning(f"Atenção: {len(res['conflitos'])} agendamento(s) no mesmo horário para este profissional.")
                st.session_state.pop("ag_novo_inicio", None)
                st.session_state.pop("ag_novo_fim", None)



# Estoque

if "estoque" in tabs:
    with tabs["estoque"]:
        categorias = executar(api_get, "/api/estoque/categorias", token=token) or []
        fornecedores = executar(api_get, "/api/estoque/fornecedores", token=token) or []

        with st.expander("Novo produto"):
            c1, c2, c3 = st.columns(3)
            nome = c1.text_input("Nome*", key="est_nome")
            codigo = c2.text_input("Código de barras", key="est_cod")
            unidade = c3.text_input("Unidade", value="unidade", key="est_un")
            atual = c1.number_input("Quantidade atual", min_value=0.0, key="est_atual")
            minima = c2.number_input("Quantidade mínima", min_value=0.0, key="est_min")
            custo = c3.number_input("Preço de custo", min_value=0.0, key="est_custo")
            cat = c1.selectbox("Categoria", [None] + categorias, format_func=lambda c: c["nome"] if c else "Sem categoria", key="est_cat")
            forn = c2.selectbox("Fornecedor", [None] + fornecedores, format_func=lambda f: f["nome"] if f else "Sem fornecedor", key="est_forn")
            if st.button("Salvar produto", key="est_submit"):
                executar(
                    api_post,
                    "/api/estoque/produtos",
                    {
                        "nome": nome, "codigo_barras": codigo, "unidade_medida": unidade,
                        "quantidade_atual": atual, "quantidade_minima": minima, "preco_custo": custo,
                        "categoria_id": cat["id"] if cat else None, "fornecedor_id": forn["id"] if forn else None,
                    },
                    token=token,
                    sucesso="Produto salvo.",
                )

        with st.expander("Categorias e fornecedores"):
            c1, c2 = st.columns(2)
            nova_cat = c1.text_input("Nova categoria", key="est_nova_cat")
            if c1.button("Adicionar categoria", key="est_cat_btn"):
                executar(api_post, "/api/estoque/categorias", {"nome": nova_cat}, token=token, sucesso="Categoria criada.")
            novo_forn = c2.text_input("Novo fornecedor", key="est_novo_forn")
            if c2.button("Adicionar fornecedor", key="est_forn_btn"):
                executar(api_post, "/api/estoque/fornecedores", {"nome": novo_forn}, token=token, sucesso="Fornecedor criado.")

        c1, c2 = st.columns([4, 1])
        busca_est = c1.text_input("Buscar por nome, código ou categoria", key="est_busca")
        so_falta = c2.checkbox("Só em falta", key="est_falta")
        produtos = executar(
            api_get, "/api/estoque/produtos", token=token, params={"busca": busca_est or None, "em_falta": so_falta}
        ) or []
        for p in produtos:
            alerta = " ⚠️ em falta" if p["em_falta"] else ""
            st.write(
                f"**{p['nome']}** · {p['quantidade_atual']:g}/{p['quantidade_minima']:g} {p['unidade_medida']}"
                f" · {p['categoria_nome']} · {p['fornecedor_nome']}{alerta}"
            )



# Financeiro

if "financeiro" in tabs:
    with tabs["financeiro"]:
        c1, c2, c3, c4 = st.columns(4)
        valor = c1.number_input("Valor (R$)", min_value=0.0, step=10.0, key="fin_valor")
        metodo = c2.selectbox("Método", ["cartao", "pix"], key="fin_metodo")
        parcelas = c3.number_input("Parcelas (1..12)", min_value=1, max_value=12, value=1, key="fin_parc")
        descricao = c4.text_input("Descrição", key="fin_desc")
        if st.button("Gerar link de pagamento", key="fin_submit"):
            res = executar(
                api_post,
                "/api/pagamentos/link",
                {"valor_total": valor, "metodo": metodo, "parcelas": int(parcelas), "descricao": descricao},
                token=token,
            )
            if res:
                st.success("Link gerado.")
                st.code(res["url"], language=None)

        for p in executar(api_get, "/api/pagamentos", token=token) or []:
            st.write(f"{p['created_at'][:16]} · {_brl(p['valor_total'])} · {p['metodo']} · {p['parcelas']}x · {p['status']}")



# LuzIA

if "luzia" in tabs:
    with tabs["luzia"]:
        cfg = executar(api_get, "/api/luzia/configuracao", token=token) or {}
        pode_salvar = me["tipo"] == "master"
        ativo = st.toggle("LuzIA ativa", value=bool(cfg.get("ativo")), disabled=not pode_salvar, key="lz_ativo")
        c1, c2 = st.columns(2)
        conf = c1.checkbox("Confirmação de agendamento", value=bool(cfg.get("confirmacao_agendamento")), key="lz_conf")
        reag = c1.checkbox("Reagendamento automático", value=bool(cfg.get("reagendamento_automatico")), key="lz_reag")
        canc = c1.checkbox("Cancelamento automático", value=bool(cfg.get("cancelamento_automatico")), key="lz_canc")
        h_conf = c2.number_input("Antecedência da confirmação (h)", min_value=1, value=int(cfg.get("antecedencia_confirmacao_horas") or 24), key="lz_hconf")
        h_reag = c2.number_input("Antecedência do reagendamento (h)", min_value=1, value=int(cfg.get("antecedencia_reagendamento_horas") or 2), key="lz_hreag")
        tel = c2.text_input("Telefone WhatsApp", value=cfg.get("telefone_whatsapp") or "", key="lz_tel")
        chave = c2.text_input("API key WhatsApp", value=cfg.get("api_key_whatsapp") or "", type="password", key="lz_key")
        msg_conf = st.text_area("Mensagem de confirmação", value=cfg.get("mensagem_confirmacao") or "", key="lz_mconf")
        msg_reag = st.text_area("Mensagem de reagendamento", value=cfg.get("mensagem_reagendamento") or "", key="lz_mreag")
        msg_canc = st.text_area("Mensagem de cancelamento", value=cfg.get("mensagem_cancelamento") or "", key="lz_mcanc")
        if pode_salvar and st.button("Salvar LuzIA", key="lz_submit"):
            executar(
                api_put,
                "/api/luzia/configuracao",
                {
                    "ativo": ativo, "confirmacao_agendamento": conf, "reagendamento_automatico": reag,
                    "cancelamento_automatico": canc, "antecedencia_confirmacao_horas": h_conf,
                    "antecedencia_reagendamento_horas": h_reag, "telefone_whatsapp": tel, "api_key_whatsapp": chave,
                    "mensagem_confirmacao": msg_conf, "mensagem_reagendamento": msg_reag, "mensagem_cancelamento": msg_canc,
                },
                token=token,
                sucesso="Configurações da LuzIA salvas.",
            )

        st.subheader("Pré-visualização")
        preview = executar(api_get, "/api/luzia/preview", token=token) or {}
        for rotulo, campo in (
            ("Confirmação", "mensagem_confirmacao"),
            ("Reagendamento", "mensagem_reagendamento"),
            ("Cancelamento", "mensagem_cancelamento"),
        ):
            if preview.get(campo):
                st.info(f"**{rotulo}:** {preview[campo]}")

        st.subheader("Atividade recente")
        for log in executar(api_get, "/api/luzia/logs", token=token) or []:
            texto_log = log.get("erro") or (log.get("mensagem_enviada") or "")[:50]
            st.caption(f"{log['created_at'][:16]} · {log['tipo_acao']} · {log['status']} · {texto_log}")



# Configurações (cards do dashboard)

if "configuracoes" in tabs:
    with tabs["configuracoes"]:
        st.subheader("Cards do dashboard")
        cards = executar(api_get, "/api/dashboard/cards", token=token) or []
        escolhidos = st.multiselect(
            "Cards exibidos (na ordem de seleção)",
            options=[c["id"] for c in cards],
            default=[c["id"] for c in cards if c["enabled"]],
            format_func=lambda cid: next(c["title"] for c in cards if c["id"] == cid),
            key="cfg_cards",
        )
        if st.button("Salvar preferências", key="cfg_submit"):
            executar(api_put, "/api/dashboard/cards", {"cards": escolhidos}, token=token, sucesso="Preferências salvas.")



# Usuários

if "usuarios" in tabs:
    with tabs["usuarios"]:
        if "criar_usuarios" in menu:
            with st.expander("Convidar usuário"):
                nome = st.text_input("Nome", key="usr_nome")
                email = st.text_input("E-mail", key="usr_email")
                tipos = ["usuario", "gerente"] if me["tipo"] == "master" else ["usuario"]
                tipo = st.selectbox("Tipo", tipos, key="usr_tipo")
                marcadas = {
                    cap: st.checkbox(rotulo, value=(cap == "dashboard"), key=f"usr_cap_{cap}")
                    for cap, rotulo in CAPACIDADES_ROTULOS.items()
                    if cap in me["permissoes"] and me["permissoes"][cap]
                }
                if st.button("Enviar convite", key="usr_submit"):
                    res = executar(
                        api_post,
                        "/api/usuarios/convites",
                        {"nome": nome, "email": email, "tipo": tipo, "permissoes": marcadas},
                        token=token,
                        sucesso="Convite criado.",
                    )
                    if res:
                        st.code(res["token_convite"], language=None)

        for u in executar(api_get, "/api/usuarios", token=token) or []:
            ativas = [CAPACIDADES_ROTULOS[c] for c, v in u["permissoes"].items() if v]
            c1, c2 = st.columns([6, 1])
            c1.write(f"**{u['nome']}** · {u['email']} · {u['tipo']} · {u['status']}")
            c1.caption(", ".join(ativas) or "sem permissões")
            if me["tipo"] == "master" and u["id"] != me["id"] and c2.button("Remover", key=f"usr_del_{u['id']}"):
                executar(api_delete, f"/api/usuarios/{u['id']}", token=token, sucesso="Usuário removido.")
                st.rerun()



# Meu perfil

with tabs["perfil"]:
    novo_nome = st.text_input("Nome", value=me["nome"], key="perf_nome")
    telefone = st.text_input("Telefone", value=me.get("telefone") or "", key="perf_tel")
    cro = st.text_input("CRO", value=me.get("cro") or "", key="perf_cro")
    if st.button("Salvar perfil", key="perf_submit"):
        if executar(api_put, "/api/me", {"nome": novo_nome, "telefone": telefone, "cro": cro}, token=token, sucesso="Perfil atualizado."):
            st.session_state.pop("me", None)
