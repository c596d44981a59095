"""
BestPrice Compare - сравнение цен поставщиков и покрытие запроса

Модули:
- config.py - Settings (курс, наценка по умолчанию, допуск), .env
- models.py - Pydantic модели записей коллаборатора + чистка item_id
- pricing.py - Себестоимость в локальной валюте, скидка к рознице
- offer_groups.py - Группы офферов (прайс поставщика / акция)
- selection.py - Выбор групп, временные цены, количества
- winner.py - Лучшая цена и победители
- coverage.py - Покрытие по поставщику и по заказу
- references.py - Замены артикулов
- order_plan.py - Распределение заказа по поставщикам
- report.py - Таблицы pandas для экранов сравнения
- session.py - Сессия сравнения (async загрузка, защита от двойной отправки)
"""

__version__ = "1.0.0"
