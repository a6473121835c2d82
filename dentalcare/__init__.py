"""
Backend do DentalCare Pro.

Estrutura:
- config.py / logging_config.py : settings (.env) e structlog
- db.py, models.py, auth_models.py : engine, sessões e modelos ORM
- permissoes.py      : capacidades, perfis e decisão de autorização
- auth_service.py    : cadastro, confirmação, login, redefinição, convites
- usuarios.py        : administração dos usuários da clínica
- pacientes.py, cadastros.py, agenda.py, estoque.py, financeiro.py : domínio
- configuracoes.py, dashboard.py, luzia.py : preferências, cards e LuzIA
- cep.py, convenios.py, busca.py : apoio aos formulários
- api_main.py        : API FastAPI
- cli.py             : administração local via CLI
"""
