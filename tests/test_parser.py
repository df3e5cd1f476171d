"""
Tests for keyword-driven table extraction.
"""
import pytest

from tabletracker.catalog import KnownTables
from tabletracker.models import ExtractionOptions, KeywordRole
from tabletracker.parser import SqlTableExtractor, extract_table_names, get_table_names_simple


class TestBasicExtraction:

    def test_simple_select(self):
        result = extract_table_names("SELECT * FROM users")
        assert result.all_tables == ["users"]
        assert result.real_tables == ["users"]
        assert result.filtered_ctes == []

    def test_joins_with_aliases(self):
        result = extract_table_names("SELECT * FROM users u JOIN orders o ON u.id = o.user_id")
        assert result.all_tables == ["users", "orders"]

    def test_schema_notation(self):
        sql = "SELECT * FROM public.users JOIN blog.posts ON users.id = posts.user_id"
        assert extract_table_names(sql).all_tables == ["public.users", "blog.posts"]

    def test_all_join_types(self):
        sql = """
            SELECT * FROM users u
            INNER JOIN orders o ON u.id = o.user_id
            LEFT JOIN profiles p ON u.id = p.user_id
            RIGHT JOIN addresses a ON u.id = a.user_id
            FULL JOIN payments pay ON o.id = pay.order_id
            CROSS JOIN products prod
            OUTER JOIN reviews r ON u.id = r.user_id
        """
        assert extract_table_names(sql).all_tables == [
            "users", "orders", "profiles", "addresses", "payments", "products", "reviews"
        ]

    def test_mixed_case_keywords(self):
        sql = """
            Select * From users u
            Inner Join orders o On u.id = o.user_id
            LEFT join products p ON o.product_id = p.id
        """
        assert extract_table_names(sql).all_tables == ["users", "orders", "products"]

    def test_subquery_in_from(self):
        sql = """
            SELECT * FROM (
              SELECT user_id, COUNT(*) as order_count FROM orders GROUP BY user_id
            ) subquery
            JOIN users ON subquery.user_id = users.id
        """
        assert extract_table_names(sql).all_tables == ["orders", "users"]

    def test_nested_queries_keep_textual_order(self):
        sql = """
            SELECT u.name,
                   (SELECT COUNT(*) FROM orders WHERE user_id = u.id) as order_count,
                   (SELECT AVG(rating) FROM reviews r JOIN products p ON r.product_id = p.id) as avg_rating
            FROM users u
            WHERE u.id IN (
              SELECT DISTINCT user_id FROM purchases pur
              JOIN payment_methods pm ON pur.payment_method_id = pm.id
              WHERE pm.type = 'credit_card'
            )
        """
        assert extract_table_names(sql).all_tables == [
            "orders", "reviews", "products", "users", "purchases", "payment_methods"
        ]

    def test_union(self):
        sql = """
            SELECT name FROM users WHERE active = true
            UNION
            SELECT name FROM archived_users WHERE archived_date > '2023-01-01'
            UNION ALL
            SELECT name FROM temp_users
        """
        assert extract_table_names(sql).all_tables == ["users", "archived_users", "temp_users"]

    def test_many_joins(self):
        tables = [f"table_{i}" for i in range(100)]
        joins = " ".join(f"JOIN {t} ON table_0.id = {t}.ref_id" for t in tables[1:])
        assert extract_table_names(f"SELECT * FROM table_0 {joins}").all_tables == tables

    def test_malformed_sql_still_yields_tables(self):
        assert extract_table_names("SELECT * FROM users WHERE").all_tables == ["users"]


class TestDmlStatements:

    def test_update(self):
        assert extract_table_names('UPDATE users SET name = "John" WHERE id = 1').all_tables == ["users"]

    def test_delete(self):
        assert extract_table_names("DELETE FROM users WHERE inactive = true").all_tables == ["users"]

    def test_insert_with_column_list_is_not_a_function(self):
        sql = 'INSERT INTO users (name, email) VALUES ("John", "john@example.com")'
        assert extract_table_names(sql).all_tables == ["users"]

    def test_merge_using(self):
        sql = "MERGE INTO users USING temp_users ON users.id = temp_users.id"
        result = extract_table_names(sql, custom_keywords=["MERGE INTO", "USING"])
        assert result.all_tables == ["users", "temp_users"]

    def test_explicit_keyword_list(self):
        sql = """
            MERGE INTO target_users t
            USING source_users s ON t.id = s.id
            WHEN MATCHED THEN UPDATE SET t.name = s.name;
            UPSERT INTO user_stats (user_id, login_count)
            SELECT user_id, COUNT(*) FROM user_logins GROUP BY user_id;
            REPLACE INTO user_cache
            SELECT * FROM users WHERE last_updated > NOW() - INTERVAL 1 HOUR;
        """
        result = extract_table_names(
            sql, keywords=["FROM", "JOIN", "MERGE INTO", "USING", "UPSERT INTO", "REPLACE INTO"]
        )
        assert result.all_tables == [
            "target_users", "source_users", "user_stats", "user_logins", "user_cache", "users"
        ]


class TestScrubbing:

    def test_string_literal_is_not_scanned(self):
        sql = "SELECT * FROM users WHERE note = 'JOIN this FROM that'"
        assert extract_table_names(sql).all_tables == ["users"]

    def test_double_quoted_literal_after_comparison_is_not_scanned(self):
        sql = """
            SELECT * FROM users
            WHERE description = 'likes to JOIN groups and FROM time to time UPDATE things'
            AND notes != "DELETE this user FROM the system"
        """
        assert extract_table_names(sql).all_tables == ["users"]

    def test_comments_are_not_scanned(self):
        sql = """
            SELECT * FROM users -- JOIN fake_one
            /* FROM fake_two */
            JOIN orders ON users.id = orders.user_id
        """
        assert extract_table_names(sql).all_tables == ["users", "orders"]

    def test_nested_comment(self):
        sql = "SELECT * FROM users /* outer /* inner */ comment */ JOIN orders ON 1 = 1"
        assert extract_table_names(sql).all_tables == ["users", "orders"]

    @pytest.mark.parametrize("sql", ["", "   ", "\n\t  \n", "-- just a comment\n/* and\nanother */"])
    def test_blank_input_yields_nothing(self, sql):
        result = extract_table_names(sql)
        assert result.all_tables == []
        assert result.real_tables == []
        assert result.filtered_ctes == []

    @pytest.mark.parametrize("sql", [
        "SELECT * FROM [unclosed bracket",
        'SELECT * FROM "unclosed quote',
        "SELECT * FROM `unclosed backtick",
        "SELECT * FROM users WHERE id IN (SELECT",
        "SELECT FROM",
        "SELECT * FROM",
        "SELECT * FROM FROM users",
        "((((",
    ])
    def test_malformed_input_never_raises(self, sql):
        result = extract_table_names(sql)
        assert len(result.all_tables) == len(set(result.all_tables))


class TestQuotedIdentifiers:

    def test_backticks(self):
        sql = "SELECT * FROM `user table` JOIN `order-table` ON `user table`.id = `order-table`.user_id"
        assert extract_table_names(sql).all_tables == ["user table", "order-table"]

    def test_double_quotes(self):
        sql = 'SELECT * FROM "user table" JOIN "order table" ON "user table".id = "order table".user_id'
        assert extract_table_names(sql).all_tables == ["user table", "order table"]

    def test_brackets(self):
        sql = "SELECT * FROM [user table] JOIN [order table] ON [user table].id = [order table].user_id"
        assert extract_table_names(sql).all_tables == ["user table", "order table"]

    def test_mixed_quotes(self):
        sql = 'SELECT * FROM `users` JOIN "orders" CROSS JOIN [products] ON users.id = orders.user_id'
        assert extract_table_names(sql).all_tables == ["users", "orders", "products"]

    def test_qualified_bracket_name(self):
        sql = "SELECT * FROM [dw].[dbo].[Fact Sales] f"
        assert extract_table_names(sql).all_tables == ["dw.dbo.Fact Sales"]

    def test_special_characters(self):
        sql = """
            SELECT * FROM "user-table@2023" ut
            JOIN "order#table$special" ots ON ut.id = ots.user_id
            JOIN `product/table%weird` ptw ON ots.product_id = ptw.id
        """
        assert extract_table_names(sql).all_tables == [
            "user-table@2023", "order#table$special", "product/table%weird"
        ]

    def test_unicode_names(self):
        sql = """
            SELECT * FROM "表格名称" t  -- Chinese table name
            JOIN `тест` test ON t.id = test.ref_id
            JOIN "CamelCase" cc ON test.id = cc.id
            JOIN "camelcase" lc ON cc.id = lc.id
        """
        assert extract_table_names(sql).all_tables == ["表格名称", "тест", "CamelCase", "camelcase"]

    def test_backticked_project_path(self):
        sql = """
            SELECT user_id FROM `project.dataset.events_20231201`
            CROSS JOIN UNNEST(event_params) AS param
            UNION ALL
            SELECT user_id FROM `project.dataset.user_events_*`
        """
        result = extract_table_names(sql)
        assert result.all_tables == ["project.dataset.events_20231201", "project.dataset.user_events_*"]


class TestSigilsAndFunctions:

    def test_variables_and_temp_tables(self):
        sql = """
            SELECT * FROM @user_table_variable utv
            JOIN dbo.fnGetActiveUsers(@date) fn ON utv.id = fn.user_id
            JOIN ##global_temp_table gtt ON fn.user_id = gtt.user_id
            JOIN #local_temp_table ltt ON gtt.id = ltt.id
        """
        assert extract_table_names(sql).all_tables == [
            "@user_table_variable", "##global_temp_table", "#local_temp_table"
        ]

    def test_table_valued_function_after_from_is_skipped(self):
        sql = "SELECT * FROM generate_series(1,100) t JOIN users u ON t.id=u.id"
        result = extract_table_names(sql)
        assert "generate_series" not in result.all_tables
        assert result.all_tables == ["users"]

    def test_function_with_space_before_paren_is_skipped(self):
        assert extract_table_names("SELECT * FROM unnest (ARRAY[1,2]) AS x").all_tables == []

    def test_scan_continues_inside_skipped_function(self):
        sql = """
            SELECT * FROM table_function(arg1, 'string', (SELECT MAX(id) FROM users)) tf
            JOIN normal_table nt ON tf.id = nt.id
            OUTER APPLY (SELECT * FROM orders WHERE user_id = nt.id) oa
        """
        assert extract_table_names(sql).all_tables == ["users", "normal_table", "orders"]

    def test_vendor_table_functions(self):
        sql = """
            SELECT * FROM users u
            JOIN JSON_TABLE(u.order_history, '$.orders[*]' COLUMNS (product_id INT PATH '$.id')) AS jt
            JOIN products p ON jt.product_id = p.id
            UNION ALL
            SELECT x.id FROM XMLTABLE('/employees/employee' COLUMNS id NUMBER PATH '@id') x
            JOIN departments d ON x.dept_id = d.id
        """
        result = extract_table_names(sql)
        assert result.all_tables == ["users", "products", "departments"]

    def test_time_travel_suffixes_are_partially_captured(self):
        sql = """
            SELECT * FROM users@v123 u WITH (NOLOCK)
            JOIN orders@{TIMESTAMP: '2023-01-01'} o ON u.id = o.user_id
            JOIN products FOR SYSTEM_TIME AS OF '2023-01-01' p ON o.product_id = p.id
        """
        assert extract_table_names(sql).all_tables == ["users@v123", "orders@", "products"]


class TestKeywordMatching:

    def test_keyword_inside_longer_word_does_not_trigger(self):
        assert extract_table_names("SELECT valid_from FROM events").all_tables == ["events"]

    def test_longest_phrase_wins_at_same_position(self):
        sql = "SELECT * FROM a JOIN LATERAL b ON true"
        result = extract_table_names(sql, keywords=["FROM", "JOIN", "JOIN LATERAL"])
        assert result.all_tables == ["a", "b"]

    def test_keyword_with_regex_metacharacters(self):
        result = extract_table_names("SELECT * FROM users", keywords=["SELECT * FROM"])
        assert result.all_tables == ["users"]

    def test_keyword_internal_whitespace_is_flexible(self):
        result = extract_table_names("SELECT * FROM a LEFT\n\tJOIN b ON 1 = 1", keywords=["LEFT   JOIN"])
        assert result.all_tables == ["b"]

    def test_explicit_empty_keyword_list_matches_nothing(self):
        assert extract_table_names("SELECT * FROM users", keywords=[]).all_tables == []

    def test_custom_keywords_are_appended_to_explicit_list(self):
        result = extract_table_names("SELECT * FROM users", keywords=[], custom_keywords=["FROM"])
        assert result.all_tables == ["users"]

    def test_blank_and_duplicate_keywords_are_dropped(self):
        extractor = SqlTableExtractor(ExtractionOptions(keywords=["FROM", " ", "from", "FROM", "JOIN"]))
        assert extractor.keywords == ["FROM", "from", "JOIN"]

    def test_dialect_preset_adds_keywords(self):
        sql = "SELECT * FROM a STRAIGHT_JOIN b ON a.id = b.id"
        assert extract_table_names(sql).all_tables == ["a"]
        assert extract_table_names(sql, dialect="mysql").all_tables == ["a", "b"]

    def test_target_role_keyword_keeps_parenthesized_capture(self):
        sql = "SELECT * FROM users u CROSS APPLY dbo.split_tags(u.tags) t"
        assert extract_table_names(sql, dialect="tsql").all_tables == ["users", "dbo.split_tags"]

    def test_unknown_dialect_falls_back_to_defaults(self):
        assert extract_table_names("SELECT * FROM users", dialect="no-such-dialect").all_tables == ["users"]

    @pytest.mark.parametrize("keyword,role", [
        ("FROM", KeywordRole.SOURCE),
        ("from", KeywordRole.SOURCE),
        ("left  join", KeywordRole.SOURCE),
        ("STRAIGHT_JOIN", KeywordRole.SOURCE),
        ("USING", KeywordRole.SOURCE),
        ("INTO", KeywordRole.TARGET),
        ("UPDATE", KeywordRole.TARGET),
        ("MERGE INTO", KeywordRole.TARGET),
        ("DELETE FROM", KeywordRole.TARGET),
    ])
    def test_keyword_roles(self, keyword, role):
        assert KeywordRole.of(keyword) is role


class TestDeduplication:

    def test_same_table_many_aliases(self):
        sql = """
            SELECT * FROM users u1
            JOIN users u2 ON u1.manager_id = u2.id
            LEFT JOIN users u3 ON u2.mentor_id = u3.id
            JOIN orders o ON u1.id = o.user_id
            JOIN users u4 ON o.created_by = u4.id
        """
        assert extract_table_names(sql).all_tables == ["users", "orders"]

    def test_qualified_and_bare_names_are_distinct_without_catalog(self):
        sql = """
            SELECT * FROM public.users main_user
            JOIN public.users manager ON main_user.manager_id = manager.id
            JOIN users subordinate ON subordinate.manager_id = main_user.id
        """
        assert extract_table_names(sql).all_tables == ["public.users", "users"]

    def test_dedup_happens_after_resolution(self, qualified_catalog):
        sql = "SELECT * FROM users JOIN public.users pu ON 1 = 1"
        assert extract_table_names(sql, known_tables=qualified_catalog).all_tables == ["public.users"]


class TestCteClassification:

    def test_spec_scenario_with_plain_mapping(self):
        sql = "WITH temp AS (SELECT * FROM users) SELECT * FROM temp JOIN orders ON temp.id = orders.user_id"
        result = extract_table_names(sql, known_tables={"users": "users", "orders": "orders"}, filter_ctes=True)
        assert result.all_tables == ["users", "temp", "orders"]
        assert result.real_tables == ["users", "orders"]
        assert result.filtered_ctes == ["temp"]

    def test_multiple_ctes(self):
        sql = """
            WITH active_users AS (
              SELECT * FROM users WHERE active = true
            ),
            user_orders AS (
              SELECT * FROM orders WHERE user_id IN (SELECT id FROM active_users)
            )
            SELECT * FROM user_orders uo
            JOIN products p ON uo.product_id = p.id
        """
        known = {
            "users": {"tableName": "users", "fullyQualifiedName": "users"},
            "orders": {"tableName": "orders", "fullyQualifiedName": "orders"},
            "products": {"tableName": "products", "fullyQualifiedName": "products"},
        }
        result = extract_table_names(sql, known_tables=known, filter_ctes=True)
        assert result.all_tables == ["users", "orders", "active_users", "user_orders", "products"]
        assert result.real_tables == ["users", "orders", "products"]
        assert result.filtered_ctes == ["active_users", "user_orders"]

    def test_recursive_cte(self):
        sql = """
            WITH RECURSIVE employee_hierarchy AS (
              SELECT id, name, manager_id, 1 as level FROM employees WHERE manager_id IS NULL
              UNION ALL
              SELECT e.id, e.name, e.manager_id, eh.level + 1
              FROM employees e
              JOIN employee_hierarchy eh ON e.manager_id = eh.id
            )
            SELECT * FROM employee_hierarchy
            JOIN departments d ON employee_hierarchy.dept_id = d.id
        """
        result = extract_table_names(sql, known_tables={"employees", "departments"}, filter_ctes=True)
        assert result.real_tables == ["employees", "departments"]
        assert result.filtered_ctes == ["employee_hierarchy"]

    def test_cte_named_like_keyword(self):
        sql = """
            with final as (
               select id, amount_paid_cents::float / 100 as amount_paid
               from invoice
               where not is_deleted
            )
            select * from final
        """
        result = extract_table_names(sql, known_tables={"invoice"}, filter_ctes=True)
        assert result.real_tables == ["invoice"]
        assert result.filtered_ctes == ["final"]

    def test_cte_shadowing_real_table_counts_as_real(self):
        # name-based classification cannot tell a CTE from a same-named table
        sql = """
            WITH users AS (SELECT * FROM employees WHERE type = 'user')
            SELECT * FROM users JOIN hierarchy h ON users.id = h.id
        """
        result = extract_table_names(sql, known_tables={"employees", "users"}, filter_ctes=True)
        assert result.real_tables == ["employees", "users"]
        assert result.filtered_ctes == ["hierarchy"]

    def test_resolved_names_are_classified(self, qualified_catalog):
        sql = "WITH t AS (SELECT * FROM users) SELECT * FROM t JOIN posts ON t.id = posts.user_id"
        result = extract_table_names(sql, known_tables=qualified_catalog, filter_ctes=True)
        assert result.all_tables == ["public.users", "t", "blog.posts"]
        assert result.real_tables == ["public.users", "blog.posts"]
        assert result.filtered_ctes == ["t"]

    def test_without_filtering_real_equals_all(self, users_orders):
        sql = "WITH temp AS (SELECT * FROM users) SELECT * FROM temp"
        result = extract_table_names(sql, known_tables=users_orders)
        assert result.real_tables == result.all_tables == ["users", "temp"]
        assert result.filtered_ctes == []

    def test_filtering_without_catalog_is_a_no_op(self):
        result = extract_table_names("WITH t AS (SELECT 1) SELECT * FROM t", filter_ctes=True)
        assert result.all_tables == result.real_tables == ["t"]
        assert result.filtered_ctes == []

    @pytest.mark.parametrize("sql", [
        "WITH a AS (SELECT * FROM users) SELECT * FROM a JOIN orders ON 1 = 1 JOIN a ON 1 = 1",
        "SELECT * FROM x JOIN y ON 1 = 1 JOIN users ON 1 = 1 JOIN x ON 1 = 1",
        "SELECT 1",
    ])
    def test_partition_invariant(self, sql, users_orders):
        result = extract_table_names(sql, known_tables=users_orders, filter_ctes=True)
        assert len(result.all_tables) == len(set(result.all_tables))
        assert set(result.real_tables).isdisjoint(result.filtered_ctes)
        assert sorted(result.real_tables + result.filtered_ctes) == sorted(result.all_tables)
        assert result.real_tables == [t for t in result.all_tables if t in result.real_tables]
        assert result.filtered_ctes == [t for t in result.all_tables if t in result.filtered_ctes]


class TestSimpleHelper:

    def test_without_catalog(self):
        sql = "SELECT * FROM users JOIN orders ON users.id = orders.user_id"
        assert get_table_names_simple(sql) == ["users", "orders"]

    def test_with_catalog_returns_real_tables(self, users_orders):
        sql = "WITH temp AS (SELECT * FROM users) SELECT * FROM temp JOIN orders ON temp.id = orders.user_id"
        assert get_table_names_simple(sql, users_orders) == ["users", "orders"]

    def test_with_flat_name_set(self):
        sql = "WITH temp AS (SELECT * FROM users) SELECT * FROM temp JOIN orders ON temp.id = orders.user_id"
        assert get_table_names_simple(sql, {"users", "orders"}) == ["users", "orders"]


class TestExtractorInstance:

    def test_reusable_across_calls(self, users_orders):
        extractor = SqlTableExtractor(ExtractionOptions(known_tables=users_orders, filter_ctes=True))
        first = extractor.extract_table_names("SELECT * FROM users")
        second = extractor.extract_table_names("SELECT * FROM cte JOIN orders ON 1 = 1")
        assert first.all_tables == ["users"]
        assert second.real_tables == ["orders"]
        assert second.filtered_ctes == ["cte"]

    def test_result_to_dict(self):
        result = extract_table_names("SELECT * FROM users")
        assert result.to_dict() == {"allTables": ["users"], "realTables": ["users"], "filteredCTEs": []}
