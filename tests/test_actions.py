from tailor_crm import actions
from tailor_crm.cache import DASHBOARD_PATH, customer_path
from tailor_crm.models import ErrorKind, OrderStatus, PaymentStatus


class TestAuthActions:

    def test_login_redirects_to_dashboard(self, ctx):
        result = actions.login(ctx, {"email": "owner@example.com", "password": "secret1"})

        assert result.success
        assert result.redirect_to == DASHBOARD_PATH
        assert result.session.user.email == "owner@example.com"

    def test_login_invalid_fields(self, ctx):
        result = actions.login(ctx, {"email": "owner", "password": "secret1"})

        assert result.error == "Invalid fields"
        assert result.error_kind == ErrorKind.VALIDATION
        assert result.session is None

    def test_login_wrong_password(self, ctx):
        result = actions.login(ctx, {"email": "owner@example.com", "password": "wrong-password"})

        assert result.error == "Could not authenticate user"
        assert result.error_kind == ErrorKind.AUTHENTICATION

    def test_signup_then_signs_in(self, ctx, identity):
        result = actions.signup(ctx, {"email": "new@example.com", "password": "abcdef"})

        assert result.redirect_to == DASHBOARD_PATH
        assert result.session.user.email == "new@example.com"
        assert identity.sign_up_redirects == ["http://localhost:8000/auth/callback"]

    def test_signup_existing_account(self, ctx):
        result = actions.signup(ctx, {"email": "owner@example.com", "password": "secret1"})
        assert result.error == "Could not authenticate user"

    def test_signup_short_password(self, ctx, identity):
        result = actions.signup(ctx, {"email": "new@example.com", "password": "abcde"})

        assert result.fields and "password" in result.fields
        assert "new@example.com" not in identity.accounts

    def test_logout_revokes_session(self, ctx, identity, shop_user):
        result = actions.logout(ctx)

        assert result.redirect_to == "/login"
        assert identity.revoked_tokens == [identity.token_for(shop_user)]
        assert identity.get_user(ctx.access_token) is None


class TestCustomerActions:

    def test_create_customer_redirects_to_detail(self, ctx, store, shop_user):
        result = actions.create_customer(ctx, {"name": "A B", "nic": "12345", "contact": "0771234567"})

        assert result.success
        assert result.redirect_to == customer_path(result.record_id)
        stored = store.customers[result.record_id]
        assert stored["name"] == "A B"
        assert stored["user_id"] == shop_user.id

    def test_create_customer_field_errors(self, ctx, store):
        result = actions.create_customer(ctx, {"name": "A", "nic": "12345", "contact": "0771234567"})

        assert result.error == "Invalid fields"
        assert result.fields == {"name": ["Name must be at least 2 characters."]}
        assert store.customers == {}

    def test_create_customer_requires_user(self, ctx, store):
        ctx.user = None

        result = actions.create_customer(ctx, {"name": "A B", "nic": "12345", "contact": "0771234567"})

        assert result.error == "You must be logged in to create a customer."
        assert store.customers == {}

    def test_create_customer_store_failure(self, ctx, store):
        store.unavailable = True

        result = actions.create_customer(ctx, {"name": "A B", "nic": "12345", "contact": "0771234567"})

        assert result.error == "Failed to create customer."
        assert result.error_kind == ErrorKind.STORE

    def test_create_customer_invalidates_dashboard(self, ctx, view_cache, shop_user):
        view_cache.set(DASHBOARD_PATH, shop_user.id, {"customers": []})

        actions.create_customer(ctx, {"name": "A B", "nic": "12345", "contact": "0771234567"})

        assert view_cache.get(DASHBOARD_PATH, shop_user.id) is None

    def test_update_customer(self, ctx, store, customer):
        result = actions.update_customer(ctx, customer["id"], {
            "name": "A B", "nic": "12345", "contact": "0770000000", "preferences": "Slim fit",
        })

        assert result.success
        assert store.customers[customer["id"]]["contact"] == "0770000000"
        assert store.customers[customer["id"]]["preferences"] == "Slim fit"

    def test_update_missing_customer(self, ctx):
        result = actions.update_customer(ctx, "cust-404", {"name": "A B", "nic": "12345", "contact": "0771234567"})
        assert result.error == "Failed to update customer."

    def test_delete_customer_cascades(self, ctx, store, customer):
        for job in ("J-1", "J-2"):
            actions.add_measurement_set(ctx, customer["id"], {
                "job_number": job, "payment_status": "Unpaid", "order_status": "Pending",
            })
        assert len(store.measurement_sets) == 2

        result = actions.delete_customer(ctx, customer["id"])

        assert result.redirect_to == DASHBOARD_PATH
        assert actions.get_customer_by_id(ctx, customer["id"]) is None
        assert store.measurement_sets == {}
        assert actions.get_customers(ctx) == []

    def test_delete_missing_customer(self, ctx):
        assert actions.delete_customer(ctx, "cust-404").error == "Failed to delete customer."


class TestMeasurementActions:

    def test_add_measurement_set_from_mapping(self, ctx, store, customer):
        result = actions.add_measurement_set(ctx, customer["id"], {
            "measurements": {"inseam": 31},
            "jobNumber": "J-9",
            "paymentStatus": "Unpaid",
            "orderStatus": "Pending",
        })

        assert result.success
        assert store.measurement_sets[result.record_id]["job_number"] == "J-9"

    def test_add_measurement_set_bad_status(self, ctx, store, customer):
        result = actions.add_measurement_set(ctx, customer["id"], {
            "payment_status": "Unpaid", "order_status": "Lost",
        })

        assert result.error_kind == ErrorKind.VALIDATION
        assert "order_status" in result.fields
        assert store.measurement_sets == {}

    def test_status_updates(self, ctx, store, customer):
        added = actions.add_measurement_set(ctx, customer["id"], {
            "payment_status": "Unpaid", "order_status": "Pending",
        })

        assert actions.update_order_status(ctx, added.record_id, customer["id"], OrderStatus.COMPLETED).success
        assert actions.update_payment_status(ctx, added.record_id, customer["id"], PaymentStatus.PAID).success

        detail = actions.get_customer_by_id(ctx, customer["id"])
        measurement_set = detail.measurement_sets[0]
        assert measurement_set.order_status == OrderStatus.COMPLETED
        assert measurement_set.payment_status == PaymentStatus.PAID
        assert measurement_set.completion_date is not None
        assert measurement_set.handover_date is None


class TestFetching:

    def _seed(self, ctx):
        first = actions.create_customer(ctx, {"name": "Nimal Perera", "nic": "901234567V", "contact": "0771111111"})
        second = actions.create_customer(ctx, {"name": "Kamala Silva", "nic": "857654321V", "contact": "0712222222"})
        actions.add_measurement_set(ctx, second.record_id, {
            "job_number": "JOB-42", "payment_status": "Unpaid", "order_status": "In Progress",
        })
        return first.record_id, second.record_id

    def test_newest_first_with_summaries(self, ctx):
        first_id, second_id = self._seed(ctx)

        customers = actions.get_customers(ctx)

        assert [c.id for c in customers] == [second_id, first_id]
        assert customers[0].measurement_sets[0].job_number == "JOB-42"
        assert customers[0].measurement_sets[0].order_status == OrderStatus.IN_PROGRESS

    def test_search_by_name_and_job_number(self, ctx):
        first_id, second_id = self._seed(ctx)

        assert [c.id for c in actions.get_customers(ctx, "nimal")] == [first_id]
        assert [c.id for c in actions.get_customers(ctx, "job-42")] == [second_id]
        assert actions.get_customers(ctx, "nobody") == []

    def test_store_failure_yields_empty_list(self, ctx, store, customer):
        store.unavailable = True
        assert actions.get_customers(ctx) == []
        assert actions.get_customer_by_id(ctx, customer["id"]) is None

    def test_customer_detail(self, ctx, customer):
        detail = actions.get_customer_by_id(ctx, customer["id"])

        assert detail.name == "A B"
        assert detail.order_history == ""
        assert detail.measurement_sets == []
