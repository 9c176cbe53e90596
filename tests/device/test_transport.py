import unittest
from unittest import mock
import usb1

from fdeprog.device import *
from fdeprog.device.transport import *
from fdeprog.device.simulation import SimulatedProgrammer, SimulatedUSBContext


class WordPackingTestCase(unittest.TestCase):
    def test_pack(self):
        self.assertEqual(pack_words([0x1234, 0xabcd]), b"\x34\x12\xcd\xab")

    def test_unpack(self):
        self.assertEqual(unpack_words(b"\x34\x12\xcd\xab"), [0x1234, 0xabcd])

    def test_unpack_odd(self):
        with self.assertRaises(ValueError):
            unpack_words(b"\x00\x01\x02")

    def test_empty(self):
        self.assertEqual(pack_words([]), b"")
        self.assertEqual(unpack_words(b""), [])


class EndpointTestCase(unittest.TestCase):
    def test_direction(self):
        self.assertFalse(Endpoint.COMMAND_OUT.is_in)
        self.assertFalse(Endpoint.DATA_OUT.is_in)
        self.assertTrue(Endpoint.DATA_IN.is_in)
        self.assertTrue(Endpoint.STATUS_IN.is_in)


class USBTransportOpenTestCase(unittest.TestCase):
    def setUp(self):
        self.device  = SimulatedProgrammer()
        self.context = SimulatedUSBContext(self.device)
        patcher = mock.patch.object(usb1, "USBContext", lambda: self.context)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.transport = USBTransport()

    def test_open(self):
        self.transport.open()
        self.assertTrue(self.transport.is_open)
        self.assertTrue(self.device.claimed)
        self.assertEqual(self.device.halts_cleared, set(Endpoint))

    def test_open_absent(self):
        self.context.device = None
        with self.assertRaisesRegex(DeviceOpenError, r"2200:2008 not found"):
            self.transport.open()
        self.assertFalse(self.transport.is_open)
        self.assertTrue(self.context.closed)

    def test_open_claim_fails(self):
        self.device.claim_fails = True
        with self.assertRaises(DeviceOpenError):
            self.transport.open()
        self.assertTrue(self.device.closed)
        self.assertTrue(self.context.closed)

    def test_open_clear_halt_fails(self):
        self.device.clear_halt_fails = True
        with self.assertRaises(DeviceOpenError):
            self.transport.open()
        self.assertFalse(self.transport.is_open)
        self.assertFalse(self.device.claimed)
        self.assertTrue(self.device.closed)

    def test_close(self):
        self.transport.open()
        self.transport.close()
        self.assertFalse(self.transport.is_open)
        self.assertFalse(self.device.claimed)
        self.assertTrue(self.device.closed)
        self.assertTrue(self.context.closed)

    def test_close_not_open(self):
        with self.assertRaisesRegex(DeviceCloseError, r"device not opened"):
            self.transport.close()


class USBTransportTransferTestCase(unittest.TestCase):
    def setUp(self):
        self.handle  = mock.Mock()
        self.context = mock.Mock()
        self.context.openByVendorIDAndProductID.return_value = self.handle
        patcher = mock.patch.object(usb1, "USBContext", return_value=self.context)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.transport = USBTransport()
        self.transport.open()

    def assertTornDown(self):
        self.assertFalse(self.transport.is_open)
        self.handle.releaseInterface.assert_called_once_with(0)
        self.handle.close.assert_called_once_with()
        self.context.close.assert_called_once_with()

    def test_write(self):
        self.handle.bulkWrite.return_value = 4
        self.transport.write(Endpoint.DATA_OUT, b"abcd")
        self.handle.bulkWrite.assert_called_once_with(Endpoint.DATA_OUT, b"abcd", 1000)

    def test_write_partial(self):
        self.handle.bulkWrite.side_effect = [3, 0, 5]
        self.transport.write(Endpoint.DATA_OUT, b"12345678")
        self.assertEqual(self.handle.bulkWrite.call_args_list, [
            mock.call(Endpoint.DATA_OUT, b"12345678", 1000),
            mock.call(Endpoint.DATA_OUT, b"45678", 1000),
            mock.call(Endpoint.DATA_OUT, b"45678", 1000),
        ])

    def test_write_empty(self):
        self.transport.write(Endpoint.COMMAND_OUT, b"")
        self.handle.bulkWrite.assert_not_called()

    def test_write_list(self):
        self.handle.bulkWrite.return_value = 2
        self.transport.write(Endpoint.COMMAND_OUT, [1, 2])
        self.handle.bulkWrite.assert_called_once_with(Endpoint.COMMAND_OUT, b"\x01\x02", 1000)

    def test_write_error(self):
        self.handle.bulkWrite.side_effect = usb1.USBErrorIO()
        with self.assertRaises(DeviceWriteError):
            self.transport.write(Endpoint.DATA_OUT, b"abcd")
        self.assertTornDown()

    def test_write_timeout(self):
        self.handle.bulkWrite.side_effect = usb1.USBErrorTimeout()
        with self.assertRaises(DeviceWriteError):
            self.transport.write(Endpoint.COMMAND_OUT, b"\x00")
        self.assertTornDown()

    def test_write_closed(self):
        self.transport.close()
        with self.assertRaises(DeviceWriteError):
            self.transport.write(Endpoint.COMMAND_OUT, b"\x00")

    def test_read(self):
        self.handle.bulkRead.return_value = b"abcd"
        self.assertEqual(self.transport.read(Endpoint.DATA_IN, 4), b"abcd")
        self.handle.bulkRead.assert_called_once_with(Endpoint.DATA_IN, 4, 1000)

    def test_read_partial(self):
        self.handle.bulkRead.side_effect = [b"abc", b"", b"defgh"]
        self.assertEqual(self.transport.read(Endpoint.DATA_IN, 8), b"abcdefgh")
        self.assertEqual(self.handle.bulkRead.call_args_list, [
            mock.call(Endpoint.DATA_IN, 8, 1000),
            mock.call(Endpoint.DATA_IN, 5, 1000),
            mock.call(Endpoint.DATA_IN, 5, 1000),
        ])

    def test_read_partial_same_as_whole(self):
        self.handle.bulkRead.side_effect = [b"\x01\x02\x03\x04"]
        whole = self.transport.read(Endpoint.DATA_IN, 4)
        self.handle.bulkRead.side_effect = [b"\x01", b"\x02\x03\x04"]
        partial = self.transport.read(Endpoint.DATA_IN, 4)
        self.assertEqual(whole, partial)

    def test_read_empty(self):
        self.assertEqual(self.transport.read(Endpoint.DATA_IN, 0), b"")
        self.handle.bulkRead.assert_not_called()

    def test_read_error(self):
        self.handle.bulkRead.side_effect = usb1.USBErrorTimeout()
        with self.assertRaisesRegex(DeviceReadError, r"^device read error: "):
            self.transport.read(Endpoint.STATUS_IN, 1)
        self.assertTornDown()

    def test_close_release_fails(self):
        self.handle.releaseInterface.side_effect = usb1.USBErrorNoDevice()
        with self.assertRaises(DeviceCloseError):
            self.transport.close()
        self.assertFalse(self.transport.is_open)
        self.handle.close.assert_called_once_with()
        self.context.close.assert_called_once_with()
